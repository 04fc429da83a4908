"""Shared fixtures for sibsurv tests"""

import numpy as np
import pandas as pd
import pytest
from sibsurv.data import SiblingHistories

NAN = np.nan


@pytest.fixture
def histories_frame():
    """Three respondents: two sisters of sibship 10 and one of sibship 20"""
    rows = [
        # respondent_id, sibship_id, sex, birth_year, death_year, survey_year, is_respondent
        (1, 10, 2, 1980.0, NAN, 2010.0, True),
        (1, 10, 1, 1975.0, 2006.5, 2010.0, False),
        (1, 10, 2, 1985.0, NAN, 2010.0, False),
        (1, 10, 1, 1970.0, 1990.0, 2010.0, False),
        (2, 10, 2, 1985.0, NAN, 2010.0, True),
        (2, 10, 2, 1980.0, NAN, 2010.0, False),
        (2, 10, 1, 1975.0, 2006.5, 2010.0, False),
        (2, 10, 1, 1970.0, 1990.0, 2010.0, False),
        (3, 20, 2, 1990.0, NAN, 2010.0, True),
        (3, 20, 1, 1988.0, NAN, 2010.0, False),
        (3, 20, 2, 1950.0, NAN, 2010.0, False),
        (3, 20, 1, 1992.0, 2008.2, 2010.0, False),
    ]
    return pd.DataFrame(rows, columns=["respondent_id", "sibship_id", "sex",
                                       "birth_year", "death_year", "survey_year",
                                       "is_respondent"])


@pytest.fixture
def histories(histories_frame):
    """SiblingHistories built from the three-respondent frame"""
    return SiblingHistories.from_dataframe(histories_frame)
