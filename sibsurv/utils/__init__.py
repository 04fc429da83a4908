"""
Utility functions
"""

from .life_table import (
    ADULT_AGE_BREAKS,
    REPRODUCTIVE_AGE_BREAKS,
    age_group_labels,
    rates_to_probability,
    adult_mortality,
    poisson_rate_interval
)

__all__ = [
    "ADULT_AGE_BREAKS",
    "REPRODUCTIVE_AGE_BREAKS",
    "age_group_labels",
    "rates_to_probability",
    "adult_mortality",
    "poisson_rate_interval"
]
