"""
Poisson regression of background adult mortality pooled across surveys.
"""
from typing import Dict, Optional, Sequence, Tuple, Union
import warnings
import numpy as np
import pandas as pd
from sklearn.linear_model import PoissonRegressor
from ..data import SiblingHistories, SiblingDataConverter, MALE, FEMALE
from ..utils.life_table import ADULT_AGE_BREAKS, age_group_labels
from .base import BaseMortalityModel


class BackgroundMortalityModel(BaseMortalityModel):
    """
    Log-linear Poisson model of mortality not related to AIDS.

    Each person-period record contributes a death indicator and its
    exposure. Pooling surveys from several countries lets sparse national
    data borrow strength from neighbouring countries. The log rate is
    additive in age group, sex and country, with a sex by country
    interaction since both the level of mortality and the sex differential
    vary between countries. Mortality is held constant over time except in
    countries whose HIV prevalence exceeds ``hiv_threshold``, which receive
    their own linear period trend.

    Exposure enters as the sample weight of the rate ``deaths / exposure``,
    which gives the same likelihood as a log-exposure offset.

    Parameters
    ----------
    alpha : float, default=0.0
        L2 penalty passed to ``sklearn.linear_model.PoissonRegressor``
    max_iter : int, default=1000
        Maximum number of solver iterations
    tol : float, default=1e-8
        Stopping tolerance of the solver
    solver : str, default="newton-cholesky"
        Solver passed to ``PoissonRegressor``
    hiv_prevalence : dict, optional
        Adult HIV prevalence by country, as a proportion
    hiv_threshold : float, default=0.01
        Prevalence above which a country gets a time trend
    reference_period : float, optional
        Calendar year at which trends are centred, the exposure-weighted
        mean period of the data by default
    age_breaks : sequence of float, optional
        Age groups used when fitting on sibling histories
    window : tuple of int, default=(0, 7)
        Reference window used when fitting on sibling histories
    include_respondents : bool, default=False
        Keep respondents' exposure when fitting on sibling histories

    Attributes
    ----------
    coefficients_ : pd.Series
        Log rate ratios indexed by design column
    intercept_ : float
        Log rate of males (or of the only sex observed) in the first age
        group of the reference country
    sexes_ : list of int
        Sex codes seen during fit
    countries_ : list of str
        Countries seen during fit, the first one is the reference level
    trend_countries_ : list of str
        Countries with a period trend
    interaction_countries_ : list of str
        Countries with their own sex differential

    Examples
    --------
    >>> from sibsurv.models import BackgroundMortalityModel
    >>> model = BackgroundMortalityModel(hiv_prevalence={"A": 0.12, "B": 0.004})
    >>> model.fit(histories)  # doctest: +SKIP
    >>> model.adult_mortality(sex=2, country="B")  # doctest: +SKIP
    """

    def __init__(self, alpha: float = 0.0,
                 max_iter: int = 1000,
                 tol: float = 1e-8,
                 solver: str = "newton-cholesky",
                 hiv_prevalence: Optional[Dict[str, float]] = None,
                 hiv_threshold: float = 0.01,
                 reference_period: Optional[float] = None,
                 age_breaks: Optional[Sequence[float]] = None,
                 window: Tuple[int, int] = (0, 7),
                 include_respondents: bool = False):
        self.alpha = alpha
        self.max_iter = max_iter
        self.tol = tol
        self.solver = solver
        self.hiv_prevalence = hiv_prevalence
        self.hiv_threshold = hiv_threshold
        self.reference_period = reference_period
        self.age_breaks = age_breaks
        self.window = window
        self.include_respondents = include_respondents

    def _person_years(self, data: Union[SiblingHistories, pd.DataFrame]) -> pd.DataFrame:
        if isinstance(data, SiblingHistories):
            age_breaks = ADULT_AGE_BREAKS if self.age_breaks is None else self.age_breaks
            return SiblingDataConverter.to_person_years(
                data, age_breaks=age_breaks, window=self.window,
                include_respondents=self.include_respondents)
        if isinstance(data, pd.DataFrame):
            required = ["country", "sex", "age_group", "period", "exposure", "death"]
            missing = [c for c in required if c not in data.columns]
            if missing:
                raise ValueError(f"Missing columns: {missing}")
            return data
        raise ValueError("data must be SiblingHistories or a person-period DataFrame")

    def _design(self, frame: pd.DataFrame) -> pd.DataFrame:
        """Build the design matrix for cells with country, sex, age_group, period"""
        age = frame["age_group"].astype(str).values
        country = frame["country"].astype(str).values
        female = (frame["sex"].values == FEMALE).astype(float)
        period = frame["period"].values.astype(float) - self.reference_period_

        columns = {}
        for label in self.age_groups_[1:]:
            columns[f"age[{label}]"] = (age == label).astype(float)
        if self.has_sex_effect_:
            columns["female"] = female
        for c in self.countries_[1:]:
            indicator = (country == c).astype(float)
            columns[f"country[{c}]"] = indicator
            if c in self.interaction_countries_:
                columns[f"female:country[{c}]"] = female * indicator
        for c in self.trend_countries_:
            columns[f"trend[{c}]"] = period * (country == c)
        return pd.DataFrame(columns, index=frame.index)

    def fit(self, data: Union[SiblingHistories, pd.DataFrame], y=None) -> "BackgroundMortalityModel":
        """
        Fit the Poisson model

        Parameters
        ----------
        data : SiblingHistories or pd.DataFrame
            Sibling histories, or person-period records with columns
            country, sex, age_group, period, exposure and death (and
            optionally weight)
        y : None
            Ignored

        Returns
        -------
        self : BackgroundMortalityModel
            Fitted model
        """
        if self.alpha < 0:
            raise ValueError("alpha must be non-negative")
        person_years = self._person_years(data)
        weight_col = "weight" if "weight" in person_years.columns else None
        cells = SiblingDataConverter.aggregate(
            person_years, by=["country", "sex", "age_group", "period"],
            weight_col=weight_col)
        cells = cells[cells["exposure"] > 0].reset_index(drop=True)
        if cells.empty:
            raise ValueError("No exposure to fit the model on")

        if isinstance(cells["age_group"].dtype, pd.CategoricalDtype):
            present = set(cells["age_group"].astype(str))
            self.age_groups_ = [str(a) for a in cells["age_group"].cat.categories
                                if str(a) in present]
        else:
            self.age_groups_ = sorted(cells["age_group"].astype(str).unique())
        self.sexes_ = sorted(int(s) for s in cells["sex"].unique())
        self.countries_ = sorted(cells["country"].astype(str).unique())
        # Sex differentials are only identified in countries with both sexes;
        # the first of them carries the female main effect
        n_sexes = cells.groupby(cells["country"].astype(str))["sex"].nunique()
        both = [c for c in self.countries_ if n_sexes[c] == 2]
        self.has_sex_effect_ = len(both) > 0
        self.interaction_countries_ = both[1:]

        prevalence = self.hiv_prevalence or {}
        self.trend_countries_ = [c for c in self.countries_
                                 if prevalence.get(c, 0.0) > self.hiv_threshold]
        if self.reference_period is None:
            self.reference_period_ = float(np.average(cells["period"],
                                                      weights=cells["exposure"]))
        else:
            self.reference_period_ = float(self.reference_period)

        X = self._design(cells)
        rate = cells["deaths"].values / cells["exposure"].values

        self.regressor_ = PoissonRegressor(alpha=self.alpha, max_iter=self.max_iter,
                                           tol=self.tol, solver=self.solver)
        self.regressor_.fit(X.values, rate, sample_weight=cells["exposure"].values)

        self.coefficients_ = pd.Series(self.regressor_.coef_, index=X.columns)
        self.intercept_ = float(self.regressor_.intercept_)
        self.feature_names_ = list(X.columns)
        self.cells_ = cells
        self.is_fitted_ = True
        return self

    def predict_rates(self, frame: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """
        Predict mortality rates

        Parameters
        ----------
        frame : pd.DataFrame, optional
            Cells with columns country, sex and age_group, and optionally
            period. Defaults to every fitted country, sex and age group at
            the reference period.

        Returns
        -------
        pd.DataFrame
            The cells with a ``rate`` column
        """
        self._check_is_fitted()
        if frame is None:
            frame = pd.DataFrame(
                [(c, s, a) for c in self.countries_ for s in self.sexes_
                 for a in self.age_groups_],
                columns=["country", "sex", "age_group"])
        else:
            missing = [c for c in ("country", "sex", "age_group") if c not in frame.columns]
            if missing:
                raise ValueError(f"Missing columns: {missing}")
            frame = frame.copy()

        if "period" not in frame.columns:
            frame["period"] = self.reference_period_

        unseen = sorted(set(frame["country"].astype(str)) - set(self.countries_))
        if unseen:
            warnings.warn(f"Countries {unseen} were not seen during fit; "
                          f"predicting at the reference country {self.countries_[0]!r}")
        unseen_sexes = sorted(set(int(s) for s in frame["sex"]) - set(self.sexes_))
        if unseen_sexes:
            raise ValueError(f"Sexes {unseen_sexes} were not seen during fit")
        unknown_ages = set(frame["age_group"].astype(str)) - set(self.age_groups_)
        if unknown_ages:
            raise ValueError(f"Unknown age groups: {sorted(unknown_ages)}")

        X = self._design(frame)
        frame["rate"] = self.regressor_.predict(X[self.feature_names_].values)
        return frame

    def adult_mortality(self, sex: int, country: str = "",
                        period: Optional[float] = None) -> float:
        """
        Probability of dying between 15 and 60 (45q15)

        Parameters
        ----------
        sex : int
            1 for male, 2 for female
        country : str
            Country to predict for
        period : float, optional
            Calendar year, the reference period by default

        Returns
        -------
        float
            45q15 implied by the predicted rates
        """
        self._check_is_fitted()
        labels = age_group_labels(ADULT_AGE_BREAKS)
        frame = pd.DataFrame({"country": country, "sex": sex, "age_group": labels})
        if period is not None:
            frame["period"] = period
        return self._adult_mortality_from(self.predict_rates(frame), sex)
