"""
Gakidou-King weighting for selection bias in sibling survival data.
"""
from typing import Optional, Sequence
import warnings
import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression
from ..data import SiblingHistories, FEMALE
from ..data.data_validator import DataValidator
from ..utils.life_table import REPRODUCTIVE_AGE_BREAKS


class SamplingFrame:
    """
    Eligibility rule of a sibling survival survey.

    DHS interview women aged 15-49, so only surviving sisters in that age
    range could have reported a sibship.

    Parameters
    ----------
    sex : int or sequence of int, default=2
        Eligible sex codes
    min_age, max_age : float
        Eligible ages at the survey, ``min_age <= age < max_age``, the
        reproductive span 15-50 by default
    """

    def __init__(self, sex=FEMALE, min_age: float = REPRODUCTIVE_AGE_BREAKS[0],
                 max_age: float = REPRODUCTIVE_AGE_BREAKS[-1]):
        self.sex = np.atleast_1d(np.asarray(sex))
        self.min_age = min_age
        self.max_age = max_age
        if max_age <= min_age:
            raise ValueError("max_age must be greater than min_age")

    def eligible(self, sex: np.ndarray, age: np.ndarray) -> np.ndarray:
        """Indicator of persons who could have been interviewed"""
        sex = np.asarray(sex)
        age = np.asarray(age, dtype=float)
        return np.isin(sex, self.sex) & (age >= self.min_age) & (age < self.max_age)

    def __repr__(self):
        return (f"SamplingFrame(sex={self.sex.tolist()}, "
                f"min_age={self.min_age}, max_age={self.max_age})")


class GakidouKingWeighter:
    """
    Weights correcting for the link between sibship size and mortality.

    A sibship can only be observed through a surviving member, and it is
    observed as many times as it has eligible survivors. Gakidou and King
    weight each respondent by ``B / S`` (siblings born over survivors) and
    extrapolate to sibships without any survivor. Counting all survivors in
    ``S``, as in the original scheme, ignores the sampling frame. Passing a
    :class:`SamplingFrame` restricts ``S`` to survivors eligible for
    interview.

    Parameters
    ----------
    sampling_frame : SamplingFrame, optional
        Eligibility rule used to count survivors
    """

    def __init__(self, sampling_frame: Optional[SamplingFrame] = None):
        self.sampling_frame = sampling_frame

    def survivor_summary(self, histories: SiblingHistories) -> pd.DataFrame:
        """
        Sibship summary with ``S`` counting the survivors who could report.

        Without a sampling frame ``S`` is every survivor. With a frame only
        survivors eligible for interview are counted, so that sibships
        whose survivors all fall outside the frame count as having none.

        Parameters
        ----------
        histories : SiblingHistories
            Sibling histories

        Returns
        -------
        pd.DataFrame
            Output of ``SiblingHistories.sibship_summary`` with ``S``
            replaced by the eligible survivor count when a frame is set

        Raises
        ------
        ValueError
            If a respondent falls outside the sampling frame
        """
        DataValidator().validate_histories(histories)
        summary = histories.sibship_summary()
        if self.sampling_frame is None:
            return summary

        own_eligible = self.sampling_frame.eligible(summary["sex"].values,
                                                    summary["age"].values)
        if not np.all(own_eligible):
            bad = summary.index[~own_eligible][0]
            raise ValueError(
                f"Respondent {bad} is outside the sampling frame {self.sampling_frame}")

        alive = ~histories.is_dead
        age = histories.survey_year - histories.birth_year
        eligible = alive & self.sampling_frame.eligible(histories.sex, age)
        summary["S"] = (pd.Series(eligible.astype(int))
                        .groupby(histories.respondent_id).sum()
                        .reindex(summary.index))
        return summary

    def sibship_weights(self, histories: SiblingHistories) -> pd.Series:
        """
        Compute the B/S weight of every respondent.

        Parameters
        ----------
        histories : SiblingHistories
            Sibling histories

        Returns
        -------
        pd.Series
            Weights indexed by respondent id
        """
        summary = self.survivor_summary(histories)
        weights = summary["B"] / summary["S"]
        weights.name = "gk_weight"
        return weights

    @staticmethod
    def apply(person_years: pd.DataFrame, weights: pd.Series) -> pd.DataFrame:
        """Multiply person-period weights by each respondent's B/S weight"""
        weighted = person_years.copy()
        factor = weights.reindex(weighted["respondent_id"].values).values
        if np.any(np.isnan(factor)):
            raise ValueError("Every respondent in the person-period data needs a weight")
        weighted["weight"] = weighted["weight"].values * factor
        return weighted

    def extrapolation_share(self, summary: pd.DataFrame, weights: pd.Series) -> float:
        """
        Estimate the share of siblings belonging to sibships with no survivor.

        Within a sibship of size ``B`` the loss of each member, by death or
        by falling outside the sampling frame, is taken as binomial with the
        weighted proportion ``d_B = 1 - S / B`` observed among sibships of
        that size. The unobserved sibships then make up ``d_B ** B`` of all
        sibships of size ``B``.

        Parameters
        ----------
        summary : pd.DataFrame
            Output of :meth:`survivor_summary`
        weights : pd.Series
            B/S weights indexed by respondent id

        Returns
        -------
        float
            Share in [0, 1) of siblings in zero-survivor sibships
        """
        frame = summary[["B", "S", "weight"]].copy()
        frame["w"] = frame["weight"] * weights.reindex(frame.index)
        frame["wL"] = frame["w"] * (frame["B"] - frame["S"])
        frame["wB"] = frame["w"] * frame["B"]
        by_size = frame.groupby("B")[["w", "wL", "wB"]].sum()

        observed = 0.0
        unobserved = 0.0
        for size, row in by_size.iterrows():
            if row["wB"] <= 0:
                continue
            d = row["wL"] / row["wB"]
            p_zero = d ** size
            if p_zero >= 1:
                warnings.warn(f"No survivor left to report in sibships of size {size}; "
                              "they are left out of the extrapolation")
                continue
            observed += row["w"]
            unobserved += row["w"] * p_zero / (1 - p_zero)

        total = observed + unobserved
        if total == 0:
            return 0.0
        return float(unobserved / total)

    def extrapolate(self, person_years: pd.DataFrame,
                    summary: pd.DataFrame,
                    weights: pd.Series,
                    by: Sequence[str] = ("sex", "age_group")) -> pd.DataFrame:
        """
        Extend weighted rates to sibships with no surviving member.

        In each cell the rate is regressed on the number of survivors in
        the sibship who could report it (``S`` of the summary) and the fit is evaluated at zero survivors. The
        extrapolated rate enters with the share returned by
        :meth:`extrapolation_share`.

        Parameters
        ----------
        person_years : pd.DataFrame
            Person-period data already weighted with :meth:`apply`
        summary : pd.DataFrame
            Output of :meth:`survivor_summary`
        weights : pd.Series
            B/S weights indexed by respondent id
        by : sequence of str
            Columns defining the cells

        Returns
        -------
        pd.DataFrame
            Cells with ``deaths``, ``exposure``, ``rate_observed``,
            ``rate_zero`` and the blended ``rate``
        """
        by = list(by)
        share = self.extrapolation_share(summary, weights)

        frame = person_years[by].copy()
        frame["S"] = summary["S"].reindex(person_years["respondent_id"].values).values
        frame["deaths"] = person_years["death"].values * person_years["weight"].values
        frame["exposure"] = person_years["exposure"].values * person_years["weight"].values
        by_survivors = frame.groupby(by + ["S"], observed=True)[["deaths", "exposure"]].sum()

        records = []
        for key, cell in by_survivors.groupby(level=by, observed=True):
            cell = cell.reset_index()
            cell = cell[cell["exposure"] > 0]
            deaths = cell["deaths"].sum()
            exposure = cell["exposure"].sum()
            observed_rate = deaths / exposure if exposure > 0 else np.nan

            if cell["S"].nunique() < 2:
                warnings.warn(f"Cannot extrapolate cell {key}: fewer than two "
                              "survivor counts observed")
                zero_rate = observed_rate
            else:
                reg = LinearRegression()
                reg.fit(cell[["S"]].values.astype(float),
                        (cell["deaths"] / cell["exposure"]).values,
                        sample_weight=cell["exposure"].values)
                zero_rate = max(float(reg.intercept_), 0.0)

            key = key if isinstance(key, tuple) else (key,)
            record = dict(zip(by, key))
            record.update({
                "deaths": deaths,
                "exposure": exposure,
                "rate_observed": observed_rate,
                "rate_zero": zero_rate,
                "rate": (1 - share) * observed_rate + share * zero_rate,
            })
            records.append(record)

        return pd.DataFrame.from_records(records, columns=by + [
            "deaths", "exposure", "rate_observed", "rate_zero", "rate"])
