"""
Tests for the Poisson model of background mortality.
"""
import numpy as np
import pandas as pd
import pytest
from sibsurv.data import SiblingHistories
from sibsurv.models import BackgroundMortalityModel
from sibsurv.simulation import SibshipSimulator
from sibsurv.utils import ADULT_AGE_BREAKS, age_group_labels

AGE_EFFECT = {"15-19": 0.0, "20-24": 0.3, "25-29": 0.6}
FEMALE_EFFECT = -0.4
COUNTRY_B = 0.5
FEMALE_B = 0.2
TREND_A = -0.05
INTERCEPT = np.log(0.005)


def _true_log_rate(country, sex, age_group, period, reference):
    log_rate = INTERCEPT + AGE_EFFECT[age_group]
    female = sex == 2
    if female:
        log_rate += FEMALE_EFFECT
    if country == "B":
        log_rate += COUNTRY_B + (FEMALE_B if female else 0.0)
    if country == "A":
        log_rate += TREND_A * (period - reference)
    return log_rate


@pytest.fixture
def person_years():
    """Cells whose deaths equal their expected value under a known model"""
    rows = []
    for country in ("A", "B"):
        for sex in (1, 2):
            for age_group in AGE_EFFECT:
                for period in (2003.5, 2005.5, 2007.5):
                    exposure = 10000.0
                    rate = np.exp(_true_log_rate(country, sex, age_group, period, 2005.5))
                    rows.append((country, sex, age_group, period, exposure, exposure * rate))
    frame = pd.DataFrame(rows, columns=["country", "sex", "age_group", "period",
                                        "exposure", "death"])
    frame["age_group"] = pd.Categorical(frame["age_group"], categories=list(AGE_EFFECT),
                                        ordered=True)
    return frame


def test_fit_recovers_coefficients(person_years):
    """Maximum likelihood recovers the generating coefficients"""
    model = BackgroundMortalityModel(hiv_prevalence={"A": 0.15, "B": 0.005},
                                     reference_period=2005.5, max_iter=5000)
    model.fit(person_years)

    assert model.countries_ == ["A", "B"]
    assert model.trend_countries_ == ["A"]
    assert model.age_groups_ == list(AGE_EFFECT)

    coef = model.coefficients_
    assert model.intercept_ == pytest.approx(INTERCEPT, abs=0.02)
    assert coef["age[20-24]"] == pytest.approx(0.3, abs=0.02)
    assert coef["age[25-29]"] == pytest.approx(0.6, abs=0.02)
    assert coef["female"] == pytest.approx(FEMALE_EFFECT, abs=0.02)
    assert coef["country[B]"] == pytest.approx(COUNTRY_B, abs=0.02)
    assert coef["female:country[B]"] == pytest.approx(FEMALE_B, abs=0.02)
    assert coef["trend[A]"] == pytest.approx(TREND_A, abs=0.01)
    assert "trend[B]" not in coef.index


def test_no_trend_below_threshold(person_years):
    """Mortality is time-invariant without high HIV prevalence"""
    model = BackgroundMortalityModel().fit(person_years)
    assert model.trend_countries_ == []
    assert not any(name.startswith("trend") for name in model.coefficients_.index)
    # Reference period defaults to the exposure-weighted mean period
    assert model.reference_period_ == pytest.approx(2005.5)


def test_predict_rates(person_years):
    """Predicted rates match the generating rates"""
    model = BackgroundMortalityModel(hiv_prevalence={"A": 0.15},
                                     reference_period=2005.5, max_iter=5000)
    model.fit(person_years)

    grid = model.predict_rates()
    assert len(grid) == 2 * 2 * 3
    assert np.all(grid["rate"] > 0)

    frame = pd.DataFrame({"country": ["B", "A"], "sex": [2, 1],
                          "age_group": ["25-29", "15-19"], "period": [2005.5, 2007.5]})
    predicted = model.predict_rates(frame)["rate"].values
    expected = np.exp([_true_log_rate("B", 2, "25-29", 2005.5, 2005.5),
                       _true_log_rate("A", 1, "15-19", 2007.5, 2005.5)])
    assert np.allclose(predicted, expected, rtol=0.03)


def test_predict_unseen_country(person_years):
    """Unseen countries fall back on the reference country"""
    model = BackgroundMortalityModel().fit(person_years)
    frame = pd.DataFrame({"country": ["C"], "sex": [1], "age_group": ["15-19"]})
    with pytest.warns(UserWarning, match="not seen"):
        unseen = model.predict_rates(frame)["rate"].iloc[0]
    reference = model.predict_rates(frame.assign(country="A"))["rate"].iloc[0]
    assert unseen == pytest.approx(reference)


def test_predict_unknown_age_group(person_years):
    """Age groups outside the fit are rejected"""
    model = BackgroundMortalityModel().fit(person_years)
    frame = pd.DataFrame({"country": ["A"], "sex": [1], "age_group": ["70-74"]})
    with pytest.raises(ValueError, match="Unknown age groups"):
        model.predict_rates(frame)
    # 45q15 needs groups up to age 60
    with pytest.raises(ValueError):
        model.adult_mortality(sex=1, country="A")


def test_invalid_inputs(person_years):
    """Test input validation"""
    with pytest.raises(ValueError, match="Missing columns"):
        BackgroundMortalityModel().fit(person_years.drop(columns="period"))
    with pytest.raises(ValueError):
        BackgroundMortalityModel().fit(np.zeros((3, 3)))
    with pytest.raises(ValueError):
        BackgroundMortalityModel(alpha=-1.0).fit(person_years)
    with pytest.raises(ValueError):
        BackgroundMortalityModel().fit(person_years.assign(exposure=0.0))
    with pytest.raises(ValueError, match="fitted"):
        BackgroundMortalityModel().predict_rates()


def test_fit_on_pooled_surveys():
    """Fit directly on sibling histories from two simulated surveys"""
    high = SibshipSimulator(n_mothers=3000, makeham=0.006, country="High",
                            random_state=1).simulate().histories
    low = SibshipSimulator(n_mothers=3000, country="Low",
                           random_state=2).simulate().histories

    frames = [high.to_dataframe(), low.to_dataframe()]
    # Respondent ids must stay unique across surveys
    frames[1]["respondent_id"] += frames[0]["respondent_id"].max() + 1
    frames[1]["sibship_id"] += frames[0]["sibship_id"].max() + 1
    pooled = SiblingHistories.from_dataframe(pd.concat(frames, ignore_index=True))

    model = BackgroundMortalityModel().fit(pooled)
    assert model.countries_ == ["High", "Low"]
    assert model.age_groups_ == age_group_labels(ADULT_AGE_BREAKS)
    assert model.coefficients_["country[Low]"] < 0

    q_high = model.adult_mortality(sex=1, country="High")
    q_low = model.adult_mortality(sex=1, country="Low")
    assert 0 < q_low < q_high < 1


def test_single_sex_fit(person_years):
    """Without one sex the sex terms are left out and that sex is not predicted"""
    females = person_years[person_years["sex"] == 2]
    model = BackgroundMortalityModel(hiv_prevalence={"A": 0.15},
                                     reference_period=2005.5, max_iter=5000)
    model.fit(females)

    assert model.sexes_ == [2]
    assert "female" not in model.coefficients_.index
    assert not any(name.startswith("female:") for name in model.coefficients_.index)
    # The intercept is now the female rate of the reference country
    assert model.intercept_ == pytest.approx(INTERCEPT + FEMALE_EFFECT, abs=0.02)
    assert model.coefficients_["country[B]"] == pytest.approx(COUNTRY_B + FEMALE_B, abs=0.02)

    grid = model.predict_rates()
    assert set(grid["sex"]) == {2}
    frame = pd.DataFrame({"country": ["A"], "sex": [1], "age_group": ["15-19"]})
    with pytest.raises(ValueError, match="not seen"):
        model.predict_rates(frame)


def test_country_with_one_sex(person_years):
    """A country observed for one sex gets no sex interaction"""
    subset = person_years[(person_years["country"] == "A") | (person_years["sex"] == 1)]
    model = BackgroundMortalityModel(hiv_prevalence={"A": 0.15},
                                     reference_period=2005.5).fit(subset)
    assert model.sexes_ == [1, 2]
    assert model.interaction_countries_ == []
    assert "female" in model.coefficients_.index
    assert "female:country[B]" not in model.coefficients_.index
    assert model.coefficients_["female"] == pytest.approx(FEMALE_EFFECT, abs=0.02)
