"""
Estimation of adult mortality from sibling histories
"""

from .completeness import CompletenessSchedule
from .weighting import GakidouKingWeighter, SamplingFrame
from .direct import DirectEstimator

__all__ = [
    "CompletenessSchedule",
    "GakidouKingWeighter",
    "SamplingFrame",
    "DirectEstimator"
]
