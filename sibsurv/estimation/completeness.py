"""
Completeness of death reporting by time before the survey.
"""
from typing import Sequence
import numpy as np
import pandas as pd
from ..data.data import MALE, FEMALE


class CompletenessSchedule:
    """
    Share of sibling deaths reported, by years before the survey.

    Respondents forget or never learn of some sibling deaths, and the
    omissions grow with time since the event. Comparing successive DHS in
    the same country gives an estimate of this decay, which is applied
    here by inflating each observed death by ``1 / completeness``.

    Parameters
    ----------
    breaks : sequence of float
        Boundaries in years before the survey, starting at 0. The last
        band is open-ended.
    male, female : sequence of float
        Completeness in (0, 1], one value per break. The value at break
        ``i`` applies from that break up to the next one.

    Examples
    --------
    >>> schedule = CompletenessSchedule([0, 3, 6, 9], male=[1.0, 0.91, 1.0, 1.0],
    ...                                 female=[1.0, 1.0, 0.83, 1.0])
    >>> schedule.completeness_for(2, 7)
    0.83
    """

    def __init__(self, breaks: Sequence[float],
                 male: Sequence[float],
                 female: Sequence[float]):
        self.breaks = np.asarray(breaks, dtype=float)
        self.male = np.asarray(male, dtype=float)
        self.female = np.asarray(female, dtype=float)
        self._validate()

    def _validate(self):
        if len(self.breaks) < 1 or self.breaks[0] != 0:
            raise ValueError("Breaks must start at 0 years before the survey")
        if np.any(np.diff(self.breaks) <= 0):
            raise ValueError("Breaks must be strictly increasing")
        for name, values in (("male", self.male), ("female", self.female)):
            if len(values) != len(self.breaks):
                raise ValueError(f"{name} completeness needs one value per band")
            if np.any(values <= 0) or np.any(values > 1):
                raise ValueError("Completeness must lie in (0, 1]")

    @classmethod
    def masquelier_2012(cls) -> "CompletenessSchedule":
        """Completeness estimated from DHS pairs in 17 sub-Saharan countries.

        83% for female deaths 6 to 9 years before the survey and 91% for male
        deaths 3 to 6 years before. Other bands are taken as complete.
        """
        return cls(breaks=[0, 3, 6, 9],
                   male=[1.0, 0.91, 1.0, 1.0],
                   female=[1.0, 1.0, 0.83, 1.0])

    def completeness_for(self, sex, years_before):
        """Completeness for a sex code and years before the survey"""
        sex = np.asarray(sex)
        years_before = np.asarray(years_before, dtype=float)
        if np.any(years_before < 0):
            raise ValueError("Years before the survey cannot be negative")
        if not np.all(np.isin(sex, [MALE, FEMALE])):
            raise ValueError("Sex must be coded 1 (male) or 2 (female)")

        band = np.searchsorted(self.breaks, years_before, side="right") - 1
        values = np.where(sex == MALE, self.male[band], self.female[band])
        if values.ndim == 0:
            return float(values)
        return values

    def adjust(self, person_years: pd.DataFrame) -> pd.DataFrame:
        """
        Inflate deaths in person-period data for under-reporting.

        Parameters
        ----------
        person_years : pd.DataFrame
            Output of ``SiblingDataConverter.to_person_years``

        Returns
        -------
        pd.DataFrame
            Copy with ``death`` divided by the completeness of its cell
        """
        adjusted = person_years.copy()
        factor = self.completeness_for(adjusted["sex"].values,
                                       adjusted["years_before"].values)
        adjusted["death"] = adjusted["death"].astype(float) / factor
        return adjusted
