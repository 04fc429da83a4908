"""
Base class for mortality models
"""

from abc import ABC, abstractmethod
import pandas as pd
from sklearn.base import BaseEstimator
from ..utils.life_table import ADULT_AGE_BREAKS, age_group_labels, adult_mortality


class BaseMortalityModel(BaseEstimator, ABC):
    """Abstract base class for models of age-specific adult mortality"""

    @abstractmethod
    def fit(self, data, y=None) -> "BaseMortalityModel":
        """
        Fit the model

        Parameters
        ----------
        data : SiblingHistories or pd.DataFrame
            Sibling histories or person-period records
        y : None
            Ignored, present for scikit-learn compatibility

        Returns
        -------
        self : BaseMortalityModel
            Fitted model
        """
        pass

    @abstractmethod
    def predict_rates(self, *args, **kwargs) -> pd.DataFrame:
        """
        Predict age-specific mortality rates

        Returns
        -------
        pd.DataFrame
            Table with ``sex``, ``age_group`` and ``rate`` columns
        """
        pass

    def _check_is_fitted(self) -> None:
        """
        Check if the model is fitted

        Raises
        ------
        ValueError
            If model is not fitted
        """
        if not getattr(self, "is_fitted_", False):
            raise ValueError("Model must be fitted before making predictions")

    @staticmethod
    def _adult_mortality_from(rates: pd.DataFrame, sex: int) -> float:
        """45q15 of one sex from a table of predicted rates"""
        subset = rates[rates["sex"] == sex]
        if subset.empty:
            raise ValueError(f"No rates available for sex {sex}")
        labels = age_group_labels(ADULT_AGE_BREAKS)
        if not set(labels).issubset(set(subset["age_group"].astype(str))):
            raise ValueError("45q15 requires five-year age groups from 15 to 60")
        subset = subset.assign(age_group=subset["age_group"].astype(str))
        return adult_mortality(subset)
