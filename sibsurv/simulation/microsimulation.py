"""
Microsimulation of sibships and of a sibling survival survey.

Mothers bear children, children live and die under a Gompertz-Makeham
hazard, and a survey interviews surviving women of reproductive age about
their siblings. Because the whole population is known, the estimates from
the survey can be compared with the true rates to measure selection
biases.
"""
from typing import Optional, Sequence, Tuple
import numpy as np
import pandas as pd
from scipy.stats import gamma
from sklearn.base import BaseEstimator
from sklearn.utils import check_random_state
from ..data import SiblingHistories, SiblingDataConverter, MALE, FEMALE
from ..utils.life_table import ADULT_AGE_BREAKS

# Share of female births
PROPORTION_FEMALE = 0.488


class SimulationResult:
    """
    Simulated population together with the survey drawn from it.

    Attributes
    ----------
    population : pd.DataFrame
        One row per person ever born: person_id, sibship_id, sex,
        birth_year, death_year (NaN if alive at the survey) and B, the
        size of the sibship
    histories : SiblingHistories
        Sibling histories reported by the interviewed respondents
    survey_year : float
        Date of the survey
    """

    def __init__(self, population: pd.DataFrame, histories: SiblingHistories,
                 survey_year: float):
        self.population = population
        self.histories = histories
        self.survey_year = survey_year

    def true_rates(self, age_breaks: Optional[Sequence[float]] = None,
                   window: Tuple[int, int] = (0, 7)) -> pd.DataFrame:
        """
        Population mortality rates over the survey reference window.

        Parameters
        ----------
        age_breaks : sequence of float, optional
            Age group boundaries, five-year groups from 15 to 60 by default
        window : tuple of int, default=(0, 7)
            Reference window in years before the survey

        Returns
        -------
        pd.DataFrame
            Columns sex, age_group, deaths, exposure and rate
        """
        if age_breaks is None:
            age_breaks = ADULT_AGE_BREAKS
        pop = self.population
        segments = SiblingDataConverter.lexis_split(
            pop["birth_year"].values, pop["death_year"].values,
            np.full(len(pop), self.survey_year), age_breaks=age_breaks,
            window=window)
        segments["sex"] = pop["sex"].values[segments["record"].values]
        rates = SiblingDataConverter.aggregate(segments, by=["sex", "age_group"],
                                               weight_col=None)
        with np.errstate(divide="ignore", invalid="ignore"):
            rates["rate"] = rates["deaths"] / rates["exposure"]
        return rates


class SibshipSimulator(BaseEstimator):
    """
    Simulate sibships and the sibling histories a survey would collect.

    The hazard at age ``a`` and date ``t`` for a person of sibship size
    ``B`` is::

        h = (level * exp(slope * a) + makeham + child * exp(-child_decay * a))
            * male_excess[if male] * frailty
            * exp(size_effect * (B - mean_children))
            * exp(mortality_decline * (survey_year - t))

    Parameters
    ----------
    n_mothers : int, default=5000
        Number of mothers, one sibship each
    survey_year : float, default=2010.0
        Date of the survey
    mean_children : float, default=5.0
        Mean number of children of the reference cohort
    fertility_decline : float, default=0.0
        Proportional decline of fertility per year of the mother's birth
        cohort, relative to mothers born 60 years before the survey
    level : float, default=5e-4
        Gompertz level
    slope : float, default=0.085
        Gompertz slope
    makeham : float, default=2e-3
        Age-independent hazard
    child : float, default=0.05
        Hazard at birth of the child mortality component
    child_decay : float, default=1.5
        Decay rate of the child mortality component
    male_excess : float, default=1.3
        Hazard ratio of males to females
    mortality_decline : float, default=0.0
        Proportional decline of mortality per calendar year
    size_effect : float, default=0.0
        Log hazard ratio per additional sibling
    frailty_variance : float, default=0.0
        Variance of the gamma frailty shared within a sibship
    sampling_fraction : float, default=1.0
        Probability that an eligible woman is interviewed
    respondent_ages : tuple of float, default=(15, 50)
        Eligible ages at the survey
    death_reporting_completeness : float, default=1.0
        Probability that a respondent reports a dead sibling
    country : str, default=""
        Country label attached to the histories
    random_state : int, optional
        Random seed for reproducibility

    Examples
    --------
    >>> from sibsurv.simulation import SibshipSimulator
    >>> result = SibshipSimulator(n_mothers=1000, random_state=42).simulate()
    >>> result.histories.n_respondents > 0
    True
    """

    def __init__(self, n_mothers: int = 5000,
                 survey_year: float = 2010.0,
                 mean_children: float = 5.0,
                 fertility_decline: float = 0.0,
                 level: float = 5e-4,
                 slope: float = 0.085,
                 makeham: float = 2e-3,
                 child: float = 0.05,
                 child_decay: float = 1.5,
                 male_excess: float = 1.3,
                 mortality_decline: float = 0.0,
                 size_effect: float = 0.0,
                 frailty_variance: float = 0.0,
                 sampling_fraction: float = 1.0,
                 respondent_ages: Tuple[float, float] = (15, 50),
                 death_reporting_completeness: float = 1.0,
                 country: str = "",
                 random_state: Optional[int] = None):
        self.n_mothers = n_mothers
        self.survey_year = survey_year
        self.mean_children = mean_children
        self.fertility_decline = fertility_decline
        self.level = level
        self.slope = slope
        self.makeham = makeham
        self.child = child
        self.child_decay = child_decay
        self.male_excess = male_excess
        self.mortality_decline = mortality_decline
        self.size_effect = size_effect
        self.frailty_variance = frailty_variance
        self.sampling_fraction = sampling_fraction
        self.respondent_ages = respondent_ages
        self.death_reporting_completeness = death_reporting_completeness
        self.country = country
        self.random_state = random_state

    def _check_params(self):
        if self.n_mothers < 1:
            raise ValueError("n_mothers must be positive")
        if self.mean_children <= 0:
            raise ValueError("mean_children must be positive")
        if min(self.level, self.makeham, self.child) < 0:
            raise ValueError("Hazard components must be non-negative")
        if self.male_excess <= 0:
            raise ValueError("male_excess must be positive")
        if self.frailty_variance < 0:
            raise ValueError("frailty_variance must be non-negative")
        if not 0 < self.sampling_fraction <= 1:
            raise ValueError("sampling_fraction must be in (0, 1]")
        if not 0 < self.death_reporting_completeness <= 1:
            raise ValueError("death_reporting_completeness must be in (0, 1]")
        lo, hi = self.respondent_ages
        if hi <= lo:
            raise ValueError("respondent_ages must be an increasing pair")

    def baseline_hazard(self, age: np.ndarray) -> np.ndarray:
        """Female hazard at age ``age`` before any multiplier"""
        age = np.asarray(age, dtype=float)
        return (self.level * np.exp(self.slope * age) + self.makeham
                + self.child * np.exp(-self.child_decay * age))

    def _simulate_births(self, rng) -> pd.DataFrame:
        mother_birth = rng.uniform(self.survey_year - 95, self.survey_year - 30,
                                   self.n_mothers)
        cohort = mother_birth - (self.survey_year - 60)
        expected = self.mean_children * np.exp(-self.fertility_decline * cohort)
        n_children = rng.poisson(expected)

        sibship_id = np.repeat(np.arange(self.n_mothers), n_children)
        age_at_birth = rng.uniform(15, 45, len(sibship_id))
        birth_year = mother_birth[sibship_id] + age_at_birth

        born = birth_year < self.survey_year
        children = pd.DataFrame({
            "sibship_id": sibship_id[born],
            "birth_year": birth_year[born],
        })
        children["sex"] = np.where(rng.uniform(size=len(children)) < PROPORTION_FEMALE,
                                   FEMALE, MALE)
        children["B"] = children.groupby("sibship_id")["birth_year"].transform("size")
        children = children.sort_values(["sibship_id", "birth_year"]).reset_index(drop=True)
        children.insert(0, "person_id", np.arange(len(children)))
        return children

    def _simulate_deaths(self, children: pd.DataFrame, rng) -> np.ndarray:
        n = len(children)
        birth = children["birth_year"].values
        multiplier = np.where(children["sex"].values == MALE, self.male_excess, 1.0)
        multiplier = multiplier * np.exp(self.size_effect
                                         * (children["B"].values - self.mean_children))
        if self.frailty_variance > 0:
            shape = 1.0 / self.frailty_variance
            frailty = gamma.rvs(shape, scale=self.frailty_variance,
                                size=self.n_mothers, random_state=rng)
            multiplier = multiplier * frailty[children["sibship_id"].values]

        death = np.full(n, np.nan)
        alive = np.ones(n, dtype=bool)
        max_age = int(np.ceil(self.survey_year - birth.min())) if n else 0
        for age in range(max_age):
            start = birth + age
            at_risk = alive & (start < self.survey_year)
            if not at_risk.any():
                break
            length = np.minimum(1.0, self.survey_year - start[at_risk])
            midpoint = start[at_risk] + length / 2
            hazard = (self.baseline_hazard(age + length / 2) * multiplier[at_risk]
                      * np.exp(self.mortality_decline * (self.survey_year - midpoint)))

            p_death = 1.0 - np.exp(-hazard * length)
            u = rng.uniform(size=at_risk.sum())
            dies = u < p_death
            # Time of death within the interval from the truncated exponential
            with np.errstate(divide="ignore", invalid="ignore"):
                offset = -np.log1p(-u[dies]) / hazard[dies]
            idx = np.flatnonzero(at_risk)[dies]
            death[idx] = start[idx] + np.minimum(offset, length[dies])
            alive[idx] = False
        return death

    def _survey(self, population: pd.DataFrame, rng) -> SiblingHistories:
        age = self.survey_year - population["birth_year"].values
        lo, hi = self.respondent_ages
        eligible = (population["death_year"].isna().values
                    & (population["sex"].values == FEMALE)
                    & (age >= lo) & (age < hi))
        sampled = eligible & (rng.uniform(size=len(population)) < self.sampling_fraction)
        if not sampled.any():
            raise ValueError("The survey interviewed no respondent; increase n_mothers")

        respondents = population.loc[sampled, ["person_id", "sibship_id"]].rename(
            columns={"person_id": "respondent_id"})
        records = respondents.merge(population, on="sibship_id", how="left")
        records["is_respondent"] = records["person_id"] == records["respondent_id"]

        dead = records["death_year"].notna().values
        reported = (~dead | (rng.uniform(size=len(records))
                             < self.death_reporting_completeness))
        records = records[reported]

        return SiblingHistories(
            respondent_id=records["respondent_id"].values,
            sibship_id=records["sibship_id"].values,
            sex=records["sex"].values,
            birth_year=records["birth_year"].values,
            death_year=records["death_year"].values,
            survey_year=np.full(len(records), float(self.survey_year)),
            is_respondent=records["is_respondent"].values,
            country=np.full(len(records), self.country, dtype=object),
        )

    def simulate(self) -> SimulationResult:
        """
        Run the microsimulation

        Returns
        -------
        SimulationResult
            The full population and the survey histories
        """
        self._check_params()
        rng = check_random_state(self.random_state)

        population = self._simulate_births(rng)
        population["death_year"] = self._simulate_deaths(population, rng)
        population = population[["person_id", "sibship_id", "sex", "birth_year",
                                 "death_year", "B"]]
        histories = self._survey(population, rng)
        return SimulationResult(population, histories, float(self.survey_year))
