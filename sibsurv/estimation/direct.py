"""
Direct estimates of adult mortality from sibling histories.
"""
from typing import Optional, Sequence, Tuple
import warnings
import numpy as np
import pandas as pd
from ..data import SiblingHistories, SiblingDataConverter, DataValidator, MALE, FEMALE
from ..models.base import BaseMortalityModel
from ..utils.life_table import ADULT_AGE_BREAKS, age_group_labels, poisson_rate_interval
from .completeness import CompletenessSchedule
from .weighting import GakidouKingWeighter, SamplingFrame


class DirectEstimator(BaseMortalityModel):
    """
    Deaths divided by person-years, by sex and age group.

    Trussell and Rodriguez showed that the three structural biases of
    sibling data (sibships without survivors are missing, sibships with
    many survivors are over-represented, respondents are left out of the
    denominator) cancel when all siblings of a probability sample are
    interviewed, the respondents' own experience is excluded and mortality
    is unrelated to sibship size. The defaults follow those conditions:
    duplicated sibships are kept and respondents are excluded.

    Parameters
    ----------
    age_breaks : sequence of float, optional
        Age group boundaries, five-year groups from 15 to 60 by default
    window : tuple of int, default=(0, 7)
        Reference period in whole years before the survey
    include_respondents : bool, default=False
        Add the respondents' own person-years to the denominator
    deduplicate : bool, default=False
        Keep a single respondent per sibship
    weighting : {None, "gakidou_king"}, default=None
        Selection bias correction applied to respondents
    sampling_frame : SamplingFrame, optional
        Eligibility rule used to count survivors in Gakidou-King weights
    completeness : CompletenessSchedule, optional
        Death reporting completeness used to inflate observed deaths
    extrapolate : bool, default=False
        Extrapolate Gakidou-King rates to sibships with no survivor
    level : float, default=0.95
        Confidence level of the rate intervals

    Attributes
    ----------
    rates_ : pd.DataFrame
        Columns sex, age_group, deaths, exposure, rate, lower, upper
    person_years_ : pd.DataFrame
        Weighted person-period records used for the estimate
    gk_weights_ : pd.Series or None
        B/S weight of each respondent when Gakidou-King weighting is used

    Examples
    --------
    >>> from sibsurv.simulation import SibshipSimulator
    >>> from sibsurv.estimation import DirectEstimator
    >>> result = SibshipSimulator(n_mothers=2000, random_state=0).simulate()
    >>> estimator = DirectEstimator().fit(result.histories)
    >>> estimator.adult_mortality(sex=1)  # doctest: +SKIP
    """

    WEIGHTING_METHODS = (None, "gakidou_king")

    def __init__(self, age_breaks: Optional[Sequence[float]] = None,
                 window: Tuple[int, int] = (0, 7),
                 include_respondents: bool = False,
                 deduplicate: bool = False,
                 weighting: Optional[str] = None,
                 sampling_frame: Optional[SamplingFrame] = None,
                 completeness: Optional[CompletenessSchedule] = None,
                 extrapolate: bool = False,
                 level: float = 0.95):
        self.age_breaks = age_breaks
        self.window = window
        self.include_respondents = include_respondents
        self.deduplicate = deduplicate
        self.weighting = weighting
        self.sampling_frame = sampling_frame
        self.completeness = completeness
        self.extrapolate = extrapolate
        self.level = level

    def _check_params(self):
        if self.weighting not in self.WEIGHTING_METHODS:
            raise ValueError(f"weighting must be one of {self.WEIGHTING_METHODS}")
        if self.extrapolate and self.weighting != "gakidou_king":
            raise ValueError("extrapolate requires weighting='gakidou_king'")
        if self.sampling_frame is not None and self.weighting != "gakidou_king":
            raise ValueError("sampling_frame is only used with weighting='gakidou_king'")

    @staticmethod
    def _deduplicate(histories: SiblingHistories) -> SiblingHistories:
        """Keep the respondent with the smallest id in every sibship"""
        summary = histories.sibship_summary()
        kept = summary.reset_index().groupby("sibship_id")["respondent_id"].min()
        return histories.subset(np.isin(histories.respondent_id, kept.values))

    def fit(self, histories: SiblingHistories, y=None) -> "DirectEstimator":
        """
        Estimate age-specific mortality rates

        Parameters
        ----------
        histories : SiblingHistories
            Sibling histories
        y : None
            Ignored

        Returns
        -------
        self : DirectEstimator
            Fitted estimator
        """
        self._check_params()
        DataValidator().validate_histories(histories)
        age_breaks = ADULT_AGE_BREAKS if self.age_breaks is None else self.age_breaks

        if self.deduplicate:
            histories = self._deduplicate(histories)

        person_years = SiblingDataConverter.to_person_years(
            histories, age_breaks=age_breaks, window=self.window,
            include_respondents=self.include_respondents)
        if self.completeness is not None:
            person_years = self.completeness.adjust(person_years)

        self.gk_weights_ = None
        if self.weighting == "gakidou_king":
            weighter = GakidouKingWeighter(sampling_frame=self.sampling_frame)
            self.gk_weights_ = weighter.sibship_weights(histories)
            person_years = weighter.apply(person_years, self.gk_weights_)

        if self.extrapolate:
            cells = weighter.extrapolate(person_years, weighter.survivor_summary(histories),
                                         self.gk_weights_)
        else:
            cells = SiblingDataConverter.aggregate(person_years)
            with np.errstate(divide="ignore", invalid="ignore"):
                cells["rate"] = cells["deaths"] / cells["exposure"]

        self.person_years_ = person_years
        self.rates_ = self._complete_grid(cells[["sex", "age_group", "deaths",
                                                "exposure", "rate"]], age_breaks)
        self.is_fitted_ = True
        return self

    def _complete_grid(self, cells: pd.DataFrame, age_breaks) -> pd.DataFrame:
        """Add empty sex x age cells and confidence intervals"""
        labels = age_group_labels(age_breaks)
        grid = pd.DataFrame(
            [(sex, label) for sex in (MALE, FEMALE) for label in labels],
            columns=["sex", "age_group"])
        cells = cells.assign(age_group=cells["age_group"].astype(str))
        rates = grid.merge(cells, on=["sex", "age_group"], how="left")
        rates[["deaths", "exposure"]] = rates[["deaths", "exposure"]].fillna(0.0)

        empty = rates["exposure"] <= 0
        if empty.any():
            cells_txt = ", ".join(f"{s}/{a}" for s, a in
                                  rates.loc[empty, ["sex", "age_group"]].values)
            warnings.warn(f"No exposure in cells (sex/age): {cells_txt}")
            rates.loc[empty, "rate"] = np.nan

        lower, upper = poisson_rate_interval(rates["deaths"].values,
                                             rates["exposure"].values,
                                             level=self.level)
        rates["lower"] = lower
        rates["upper"] = upper
        rates["age_group"] = pd.Categorical(rates["age_group"], categories=labels,
                                            ordered=True)
        return rates

    def predict_rates(self) -> pd.DataFrame:
        """
        Return the estimated rates

        Returns
        -------
        pd.DataFrame
            Copy of ``rates_``
        """
        self._check_is_fitted()
        return self.rates_.copy()

    def adult_mortality(self, sex: int) -> float:
        """
        Probability of dying between 15 and 60 (45q15)

        Parameters
        ----------
        sex : int
            1 for male, 2 for female

        Returns
        -------
        float
            45q15 implied by the estimated rates
        """
        self._check_is_fitted()
        return self._adult_mortality_from(self.rates_, sex)
