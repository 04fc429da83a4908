"""
Data conversion utilities for sibling survival histories
"""

import numpy as np
import pandas as pd
from typing import List, Optional, Sequence, Tuple
from .data import SiblingHistories
from .data_validator import DataValidator
from ..time_handler import TimeHandler
from ..utils.life_table import ADULT_AGE_BREAKS, age_group_labels

PERSON_YEAR_COLUMNS = ["respondent_id", "sibship_id", "country", "sex",
                       "age_group", "age_start", "years_before", "period",
                       "exposure", "death", "weight"]


class SiblingDataConverter:
    """Utility class for converting sibling histories into person-period data"""

    @staticmethod
    def lexis_split(
        birth: np.ndarray,
        death: np.ndarray,
        survey: np.ndarray,
        age_breaks: Sequence[float] = ADULT_AGE_BREAKS,
        window: Tuple[int, int] = (0, 7)
    ) -> pd.DataFrame:
        """Cut life lines into age group x year-before-survey segments.

        Args:
            birth: Dates of birth
            death: Dates of death, NaN when alive at the survey
            survey: Date of the survey for each life line
            age_breaks: Boundaries of the age groups
            window: Reference window in whole years before the survey

        Returns:
            DataFrame with ``record`` (position in the input arrays),
            ``age_group``, ``age_start``, ``years_before``, ``exposure``
            and ``death`` for every segment with exposure or a death
        """
        DataValidator().validate_age_breaks(age_breaks)
        lo, hi = TimeHandler.validate_window(window)
        birth = TimeHandler.validate_times(birth)
        death = TimeHandler.validate_times(death)
        survey = TimeHandler.validate_times(survey)

        dead = ~np.isnan(death)
        obs_end = np.where(dead, death, survey)
        TimeHandler.validate_life_lines(birth, obs_end)

        breaks = np.asarray(age_breaks, dtype=float)
        labels = age_group_labels(age_breaks)
        # (n_records, n_groups) age-band boundaries in calendar time
        age_lo = birth[:, None] + breaks[None, :-1]
        age_hi = birth[:, None] + breaks[None, 1:]

        chunks = []
        for k in range(lo, hi):
            band_lo = (survey - k - 1)[:, None]
            band_hi = (survey - k)[:, None]
            seg_lo = np.maximum(age_lo, band_lo)
            seg_hi = np.minimum(age_hi, band_hi)
            exposure = TimeHandler.overlap(birth[:, None], obs_end[:, None], seg_lo, seg_hi)
            died = (dead[:, None] & (death[:, None] >= seg_lo)
                    & (death[:, None] < seg_hi))
            if k == 0:
                # The band ending at the survey is closed on the right
                at_survey = ((death[:, None] == band_hi) & (death[:, None] >= age_lo)
                             & (death[:, None] < age_hi))
                died = died | (dead[:, None] & at_survey)

            rows, groups = np.nonzero((exposure > 0) | died)
            chunks.append((rows, groups, np.full(len(rows), k),
                           exposure[rows, groups], died[rows, groups]))

        group = np.concatenate([c[1] for c in chunks])
        return pd.DataFrame({
            "record": np.concatenate([c[0] for c in chunks]),
            "age_group": pd.Categorical(np.array(labels, dtype=object)[group],
                                        categories=labels, ordered=True),
            "age_start": breaks[:-1][group],
            "years_before": np.concatenate([c[2] for c in chunks]),
            "exposure": np.concatenate([c[3] for c in chunks]),
            "death": np.concatenate([c[4] for c in chunks]).astype(int),
        })

    @staticmethod
    def to_person_years(
        histories: SiblingHistories,
        age_breaks: Sequence[float] = ADULT_AGE_BREAKS,
        window: Tuple[int, int] = (0, 7),
        include_respondents: bool = False
    ) -> pd.DataFrame:
        """Split sibling histories on a Lexis diagram.

        Every record is cut into segments by age group and by single year
        before the survey. Only the part of life inside the reference
        window ``[survey - hi, survey - lo)`` is kept.

        Args:
            histories: Sibling histories
            age_breaks: Boundaries of the age groups
            window: Reference window in whole years before the survey
            include_respondents: Whether the respondents' own exposure is kept

        Returns:
            DataFrame with one row per person-period segment. ``exposure`` is
            in person-years and ``death`` is 1 when the death falls inside
            the segment.
        """
        DataValidator().validate_histories(histories)

        keep = np.ones(len(histories), dtype=bool)
        if not include_respondents:
            keep = ~histories.is_respondent
        ids = np.flatnonzero(keep)

        segments = SiblingDataConverter.lexis_split(
            histories.birth_year[keep], histories.death_year[keep],
            histories.survey_year[keep], age_breaks=age_breaks, window=window)
        record = ids[segments["record"].values]

        person_years = pd.DataFrame({
            "respondent_id": histories.respondent_id[record],
            "sibship_id": histories.sibship_id[record],
            "country": histories.country[record],
            "sex": histories.sex[record],
            "age_group": segments["age_group"].values,
            "age_start": segments["age_start"].values,
            "years_before": segments["years_before"].values,
            "period": histories.survey_year[record] - segments["years_before"].values - 0.5,
            "exposure": segments["exposure"].values,
            "death": segments["death"].values,
            "weight": histories.weight[record],
        })
        return person_years[PERSON_YEAR_COLUMNS]

    @staticmethod
    def aggregate(
        person_years: pd.DataFrame,
        by: Optional[List[str]] = None,
        weight_col: Optional[str] = "weight"
    ) -> pd.DataFrame:
        """Collapse person-period rows into cells.

        Args:
            person_years: Output of :meth:`to_person_years`
            by: Columns defining the cells, sex and age group by default
            weight_col: Column of record weights, None for unweighted sums

        Returns:
            DataFrame with the ``by`` columns, weighted ``deaths`` and
            weighted ``exposure``
        """
        if by is None:
            by = ["sex", "age_group"]
        missing = [c for c in by if c not in person_years.columns]
        if missing:
            raise ValueError(f"Missing columns: {missing}")

        if weight_col is None:
            w = np.ones(len(person_years))
        else:
            w = person_years[weight_col].values
        frame = person_years[by].copy()
        frame["deaths"] = person_years["death"].values * w
        frame["exposure"] = person_years["exposure"].values * w

        cells = frame.groupby(by, observed=True, sort=True)[["deaths", "exposure"]].sum()
        return cells.reset_index()
