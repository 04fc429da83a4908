"""
Data validation utilities for sibling survival data
"""

import numpy as np
from typing import Sequence, Tuple
from .data import SiblingHistories
from ..time_handler import TimeHandler


class DataValidator:
    """Validator for sibling histories and estimation settings"""

    def validate_histories(self, histories: SiblingHistories) -> bool:
        """Validate sibling histories

        Args:
            histories: Object expected to be a SiblingHistories instance

        Returns:
            True if data is valid, raises ValueError otherwise
        """
        if not isinstance(histories, SiblingHistories):
            raise ValueError("histories must be a SiblingHistories object")

        # Re-run the invariants in case arrays were modified in place
        histories._validate()
        return True

    def validate_window(self, window: Tuple[float, float]) -> bool:
        """Validate a reference window in years before the survey

        Args:
            window: (lo, hi) pair of whole years, lo < hi

        Returns:
            True if the window is valid, raises ValueError otherwise
        """
        TimeHandler.validate_window(window)
        return True

    def validate_age_breaks(self, age_breaks: Sequence[float]) -> bool:
        """Validate age group boundaries

        Args:
            age_breaks: Increasing sequence of at least two non-negative whole ages

        Returns:
            True if the breaks are valid, raises ValueError otherwise
        """
        breaks = TimeHandler.validate_times(age_breaks)

        if breaks.ndim != 1 or len(breaks) < 2:
            raise ValueError("At least two age breaks are required")
        if np.any(breaks < 0):
            raise ValueError("Age breaks cannot be negative")
        if np.any(breaks != np.floor(breaks)):
            raise ValueError("Age breaks must be whole years")
        if np.any(np.diff(breaks) <= 0):
            raise ValueError("Age breaks must be strictly increasing")

        return True
