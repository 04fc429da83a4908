"""
Data structures for sibling survival histories
"""

import numpy as np
import pandas as pd
from typing import Union, Optional

MALE = 1
FEMALE = 2

ArrayLike = Union[np.ndarray, pd.Series, list]


class SiblingHistories:
    """Sibling histories collected from survey respondents

    Each record is one member of a sibship as reported by one respondent.
    The respondent's own record is kept (``is_respondent``) so that her
    exposure can be added to the denominator when required. When two
    respondents belong to the same sibship, the sibship appears twice.
    """

    COLUMNS = ["respondent_id", "sibship_id", "sex", "birth_year",
               "death_year", "survey_year", "is_respondent", "weight",
               "country"]

    def __init__(self, respondent_id: ArrayLike,
                 sibship_id: ArrayLike,
                 sex: ArrayLike,
                 birth_year: ArrayLike,
                 death_year: ArrayLike,
                 survey_year: ArrayLike,
                 is_respondent: ArrayLike,
                 weight: Optional[ArrayLike] = None,
                 country: Optional[ArrayLike] = None):
        """
        Initialize sibling histories

        Parameters
        ----------
        respondent_id : array-like
            Identifier of the respondent who reported the record
        sibship_id : array-like
            Identifier of the sibship (shared by respondents who are sisters)
        sex : array-like
            1 for male, 2 for female
        birth_year : array-like
            Date of birth in decimal years
        death_year : array-like
            Date of death in decimal years, NaN if alive at the survey
        survey_year : array-like
            Date of the respondent's interview in decimal years
        is_respondent : array-like
            True for the respondent's own record
        weight : array-like, optional
            Survey sampling weight of the respondent, 1 by default
        country : array-like, optional
            Country of the survey, used to pool surveys in regression
        """
        self.respondent_id = np.asarray(respondent_id)
        self.sibship_id = np.asarray(sibship_id)
        self.sex = np.asarray(sex)
        self.birth_year = np.asarray(birth_year, dtype=float)
        self.death_year = np.asarray(death_year, dtype=float)
        self.survey_year = np.asarray(survey_year, dtype=float)
        self.is_respondent = np.asarray(is_respondent, dtype=bool)
        n = len(self.respondent_id)
        if weight is None:
            self.weight = np.ones(n)
        else:
            self.weight = np.asarray(weight, dtype=float)
        if country is None:
            self.country = np.full(n, "", dtype=object)
        else:
            self.country = np.asarray(country, dtype=object)
        self._validate()

    def _validate(self):
        """Validate the sibling histories"""
        n = len(self.respondent_id)
        arrays = [self.sibship_id, self.sex, self.birth_year, self.death_year,
                  self.survey_year, self.is_respondent, self.weight, self.country]
        if not all(len(a) == n for a in arrays):
            raise ValueError("All arrays must have the same length")
        if n == 0:
            raise ValueError("Sibling histories cannot be empty")

        if not np.all(np.isin(self.sex, [MALE, FEMALE])):
            raise ValueError("Sex must be coded 1 (male) or 2 (female)")
        if np.any(np.isnan(self.birth_year)) or np.any(np.isnan(self.survey_year)):
            raise ValueError("Birth and survey dates cannot be missing")
        if np.any(self.birth_year > self.survey_year):
            raise ValueError("Siblings must be born before the survey")

        dead = self.is_dead
        if np.any(self.death_year[dead] < self.birth_year[dead]):
            raise ValueError("Death dates cannot precede birth dates")
        if np.any(self.death_year[dead] > self.survey_year[dead]):
            raise ValueError("Death dates cannot follow the survey date")
        if not np.all(self.weight > 0):
            raise ValueError("Sampling weights must be positive")

        # One alive respondent record per respondent
        counts = pd.Series(self.is_respondent).groupby(self.respondent_id).sum()
        if not np.all(counts.values == 1):
            bad = counts.index[counts.values != 1][0]
            raise ValueError(f"Respondent {bad} must have exactly one own record")
        if np.any(dead & self.is_respondent):
            raise ValueError("Respondents must be alive at the survey")

        frame = pd.DataFrame({"r": self.respondent_id,
                              "y": self.survey_year,
                              "c": self.country})
        per_respondent = frame.groupby("r").nunique()
        if np.any(per_respondent["y"] > 1):
            raise ValueError("Survey date must be constant within a respondent")
        if np.any(per_respondent["c"] > 1):
            raise ValueError("Country must be constant within a respondent")

    def __len__(self):
        return len(self.respondent_id)

    @property
    def is_dead(self) -> np.ndarray:
        """Indicator of siblings reported dead"""
        return ~np.isnan(self.death_year)

    @property
    def n_respondents(self) -> int:
        return len(np.unique(self.respondent_id))

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "SiblingHistories":
        """Build histories from a DataFrame with the standard column names"""
        required = ["respondent_id", "sibship_id", "sex", "birth_year",
                    "death_year", "survey_year", "is_respondent"]
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise ValueError(f"Missing columns: {missing}")
        return cls(
            respondent_id=df["respondent_id"].values,
            sibship_id=df["sibship_id"].values,
            sex=df["sex"].values,
            birth_year=df["birth_year"].values,
            death_year=df["death_year"].values,
            survey_year=df["survey_year"].values,
            is_respondent=df["is_respondent"].values,
            weight=df["weight"].values if "weight" in df.columns else None,
            country=df["country"].values if "country" in df.columns else None,
        )

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame({col: getattr(self, col) for col in self.COLUMNS})

    def subset(self, mask: np.ndarray) -> "SiblingHistories":
        """Return the histories restricted to a boolean record mask"""
        mask = np.asarray(mask, dtype=bool)
        return SiblingHistories(
            respondent_id=self.respondent_id[mask],
            sibship_id=self.sibship_id[mask],
            sex=self.sex[mask],
            birth_year=self.birth_year[mask],
            death_year=self.death_year[mask],
            survey_year=self.survey_year[mask],
            is_respondent=self.is_respondent[mask],
            weight=self.weight[mask],
            country=self.country[mask],
        )

    def sibship_summary(self) -> pd.DataFrame:
        """
        Summarize each respondent's sibship

        Returns
        -------
        pd.DataFrame
            One row per respondent with ``B`` (siblings ever born, respondent
            included), ``S`` (survivors at the survey, respondent included),
            ``D`` (deaths), and the respondent's sibship id, sex, age at the
            survey, survey date, country and weight.
        """
        df = self.to_dataframe()
        df["dead"] = self.is_dead.astype(int)
        counts = df.groupby("respondent_id").agg(
            B=("dead", "size"),
            D=("dead", "sum"),
        )
        counts["S"] = counts["B"] - counts["D"]

        own = df[df["is_respondent"]].set_index("respondent_id")
        summary = counts.join(own[["sibship_id", "sex", "birth_year",
                                   "survey_year", "country", "weight"]])
        summary["age"] = summary["survey_year"] - summary["birth_year"]
        summary = summary.drop(columns="birth_year")
        return summary[["sibship_id", "B", "S", "D", "sex", "age",
                        "survey_year", "country", "weight"]]
