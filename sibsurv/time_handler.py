import numpy as np
from typing import Union, List, Tuple


class TimeHandler:
    """Lexis-diagram time handling shared by converters and estimators"""

    @staticmethod
    def validate_times(times: Union[np.ndarray, List[float]]) -> np.ndarray:
        """
        Coerce dates or ages to a float array

        Missing values are allowed since death dates are NaN for survivors.

        Parameters
        ----------
        times : array-like
            Dates or ages in decimal years

        Returns
        -------
        np.ndarray
            Float array of the same shape

        Raises
        ------
        ValueError
            If values are non-numeric or infinite
        """
        try:
            times = np.asarray(times, dtype=float)
        except (TypeError, ValueError):
            raise ValueError("Dates and ages must be numeric")

        if np.any(np.isinf(times)):
            raise ValueError("Dates and ages must be finite")

        return times

    @staticmethod
    def validate_window(window: Tuple[float, float]) -> Tuple[float, float]:
        """
        Validate a reference window expressed in years before the survey

        Parameters
        ----------
        window : tuple of (lo, hi)
            The window covers ``[survey - hi, survey - lo)``

        Returns
        -------
        tuple
            Validated window as integers

        Raises
        ------
        ValueError
            If the window is malformed
        """
        if len(window) != 2:
            raise ValueError("Window must be a (lo, hi) pair")
        lo, hi = window
        if lo < 0:
            raise ValueError("Window cannot start after the survey")
        if hi <= lo:
            raise ValueError("Window end must be greater than window start")
        if int(lo) != lo or int(hi) != hi:
            raise ValueError("Window bounds must be whole years")
        return int(lo), int(hi)

    @staticmethod
    def overlap(start: np.ndarray, end: np.ndarray,
                lo: np.ndarray, hi: np.ndarray) -> np.ndarray:
        """
        Length of the intersection of ``[start, end)`` with ``[lo, hi)``

        All arguments broadcast against each other.
        """
        return np.clip(np.minimum(end, hi) - np.maximum(start, lo), 0.0, None)

    @staticmethod
    def validate_life_lines(birth: np.ndarray, end: np.ndarray) -> None:
        """
        Check that every life line ends at or after birth

        Parameters
        ----------
        birth : np.ndarray
            Dates of birth
        end : np.ndarray
            Date of death, or of the survey for survivors

        Raises
        ------
        ValueError
            If the arrays differ in length or a line ends before birth
        """
        if len(birth) != len(end):
            raise ValueError("Birth and end dates must have the same length")
        if np.any(end < birth):
            raise ValueError("Life lines cannot end before birth")
