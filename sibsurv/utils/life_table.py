"""
Life table helpers for converting age-specific rates into probabilities.
"""
from typing import List, Sequence, Tuple, Union
import numpy as np
import pandas as pd
from scipy.stats import chi2

# Five-year groups spanning the 45q15 interval
ADULT_AGE_BREAKS = [15, 20, 25, 30, 35, 40, 45, 50, 55, 60]

# DHS maternal mortality module collects siblings aged 15-49
REPRODUCTIVE_AGE_BREAKS = [15, 20, 25, 30, 35, 40, 45, 50]


def age_group_labels(age_breaks: Sequence[float]) -> List[str]:
    """Labels such as ``"15-19"`` for consecutive age breaks"""
    if any(int(b) != b for b in age_breaks):
        raise ValueError("Age breaks must be whole years")
    labels = []
    for lo, hi in zip(age_breaks[:-1], age_breaks[1:]):
        labels.append(f"{int(lo)}-{int(hi) - 1}")
    return labels


def rates_to_probability(
    rates: Union[np.ndarray, Sequence[float]],
    widths: Union[np.ndarray, Sequence[float]]
) -> float:
    """
    Probability of dying across consecutive age groups.

    Assumes a constant hazard within each group so that
    ``nqx = 1 - exp(-sum(m_i * n_i))``.

    Parameters
    ----------
    rates : array-like
        Age-specific mortality rates
    widths : array-like
        Width in years of each age group

    Returns
    -------
    float
        Probability of dying over the whole span
    """
    rates = np.asarray(rates, dtype=float)
    widths = np.asarray(widths, dtype=float)
    if rates.shape != widths.shape:
        raise ValueError("Rates and widths must have the same shape")
    if np.any(np.isnan(rates)):
        raise ValueError("Rates cannot contain missing values")
    if np.any(rates < 0):
        raise ValueError("Rates must be non-negative")
    return float(1.0 - np.exp(-np.sum(rates * widths)))


def adult_mortality(rates: pd.DataFrame, rate_col: str = "rate") -> float:
    """
    45q15 from a table of five-year age-specific rates.

    Parameters
    ----------
    rates : pd.DataFrame
        Table with an ``age_group`` column labelled as by
        :func:`age_group_labels` and a column of rates
    rate_col : str
        Name of the rate column

    Returns
    -------
    float
        Probability of dying between exact ages 15 and 60
    """
    labels = age_group_labels(ADULT_AGE_BREAKS)
    indexed = rates.set_index("age_group")[rate_col]
    missing = [label for label in labels if label not in indexed.index]
    if missing:
        raise ValueError(f"Rates are missing for age groups {missing}")
    values = indexed.loc[labels].values
    return rates_to_probability(values, np.diff(ADULT_AGE_BREAKS))


def poisson_rate_interval(
    deaths: Union[np.ndarray, float],
    exposure: Union[np.ndarray, float],
    level: float = 0.95
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Exact (Garwood) confidence interval for a Poisson rate.

    Parameters
    ----------
    deaths : array-like
        Observed (possibly weighted) death counts
    exposure : array-like
        Person-years of exposure
    level : float
        Confidence level

    Returns
    -------
    lower, upper : np.ndarray
        Interval bounds on the rate scale, NaN where exposure is zero
    """
    if not 0 < level < 1:
        raise ValueError("level must be between 0 and 1")
    deaths = np.asarray(deaths, dtype=float)
    exposure = np.asarray(exposure, dtype=float)
    tail = (1.0 - level) / 2.0

    # chi2 with zero degrees of freedom is undefined; the lower bound is 0 there
    safe_df = np.where(deaths > 0, 2 * deaths, 1.0)
    lower_count = np.where(deaths > 0, chi2.ppf(tail, safe_df) / 2.0, 0.0)
    upper_count = chi2.ppf(1.0 - tail, 2 * (deaths + 1)) / 2.0

    with np.errstate(divide="ignore", invalid="ignore"):
        lower = np.where(exposure > 0, lower_count / exposure, np.nan)
        upper = np.where(exposure > 0, upper_count / exposure, np.nan)
    return lower, upper
