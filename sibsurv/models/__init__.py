"""
sibsurv models package.
"""

from .base import BaseMortalityModel
from .poisson import BackgroundMortalityModel

__all__ = [
    'BaseMortalityModel',
    'BackgroundMortalityModel'
]
