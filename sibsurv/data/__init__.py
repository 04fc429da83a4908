"""
Data structures for sibling survival analysis
"""

from .data import SiblingHistories, MALE, FEMALE
from .data_converter import SiblingDataConverter
from .data_validator import DataValidator

__all__ = [
    "SiblingHistories",
    "MALE",
    "FEMALE",
    "SiblingDataConverter",
    "DataValidator"
]
