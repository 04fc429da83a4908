"""
Tests for Gakidou-King weighting.
"""
import warnings
import numpy as np
import pandas as pd
import pytest
from sibsurv.data import SiblingDataConverter, SiblingHistories
from sibsurv.estimation import GakidouKingWeighter, SamplingFrame
from sibsurv.utils import REPRODUCTIVE_AGE_BREAKS


def test_sampling_frame_eligibility():
    """Test the default DHS sampling frame"""
    frame = SamplingFrame()
    assert (frame.min_age, frame.max_age) == (REPRODUCTIVE_AGE_BREAKS[0],
                                              REPRODUCTIVE_AGE_BREAKS[-1])
    sex = np.array([2, 2, 1, 2, 2])
    age = np.array([30.0, 14.9, 30.0, 49.9, 50.0])
    assert list(frame.eligible(sex, age)) == [True, False, False, True, False]

    both = SamplingFrame(sex=[1, 2])
    assert both.eligible(np.array([1]), np.array([30.0]))[0]

    with pytest.raises(ValueError):
        SamplingFrame(min_age=50, max_age=15)


def test_weights_without_frame(histories):
    """B/S counting all survivors"""
    weights = GakidouKingWeighter().sibship_weights(histories)
    assert weights.name == "gk_weight"
    assert weights.loc[1] == pytest.approx(2.0)
    assert weights.loc[2] == pytest.approx(2.0)
    assert weights.loc[3] == pytest.approx(4.0 / 3.0)


def test_weights_with_frame(histories):
    """B/S counting only survivors eligible for interview"""
    weighter = GakidouKingWeighter(sampling_frame=SamplingFrame())
    weights = weighter.sibship_weights(histories)
    # Sibship 10: the two respondents are the eligible survivors
    assert weights.loc[1] == pytest.approx(2.0)
    # Sibship 20: surviving brother and sister aged 60 cannot be interviewed
    assert weights.loc[3] == pytest.approx(4.0)


def test_respondent_outside_frame(histories):
    """Respondents must belong to the sampling frame"""
    weighter = GakidouKingWeighter(sampling_frame=SamplingFrame(min_age=25))
    with pytest.raises(ValueError, match="outside the sampling frame"):
        weighter.sibship_weights(histories)


def test_apply_weights(histories):
    """Test multiplying person-period weights"""
    weighter = GakidouKingWeighter()
    weights = weighter.sibship_weights(histories)
    py = SiblingDataConverter.to_person_years(histories)
    weighted = weighter.apply(py, weights)

    cells = SiblingDataConverter.aggregate(weighted)
    male_15 = cells[(cells["sex"] == 1) & (cells["age_group"].astype(str) == "15-19")].iloc[0]
    assert male_15["exposure"] == pytest.approx(6.2 * 4.0 / 3.0)
    # Original frame is untouched
    assert np.all(py["weight"] == 1.0)

    with pytest.raises(ValueError):
        weighter.apply(py, weights.drop(3))


def test_extrapolation_share(histories):
    """Zero-survivor share under binomial survival"""
    weighter = GakidouKingWeighter()
    weights = weighter.sibship_weights(histories)
    summary = histories.sibship_summary()

    share = weighter.extrapolation_share(summary, weights)
    # Single sibship size of 4: weighted proportion dead is 28/64
    d = (2 * 2 + 2 * 2 + 4.0 / 3.0) / (2 * 4 + 2 * 4 + 4.0 / 3.0 * 4)
    assert d == pytest.approx(0.4375)
    assert share == pytest.approx(d ** 4)


def test_extrapolation_share_all_dead():
    """Sibship sizes with no survivors in expectation are skipped"""
    summary = pd.DataFrame({"B": [2, 3], "D": [2, 1], "S": [0, 2],
                            "weight": [1.0, 1.0]}, index=[1, 2])
    weights = pd.Series([1.0, 1.0], index=[1, 2])
    with pytest.warns(UserWarning, match="No survivor left"):
        share = GakidouKingWeighter().extrapolation_share(summary, weights)
    assert share == pytest.approx((1 / 3) ** 3)


def test_extrapolate_linear():
    """Rates regressed on survivors and evaluated at zero survivors"""
    person_years = pd.DataFrame({
        "respondent_id": [1, 2],
        "sex": [1, 1],
        "age_group": ["30-34", "30-34"],
        "death": [2.0, 1.0],
        "exposure": [100.0, 100.0],
        "weight": [1.0, 1.0],
    })
    summary = pd.DataFrame({"B": [2, 2], "D": [1, 0], "S": [1, 2],
                            "weight": [1.0, 1.0]}, index=[1, 2])
    weights = pd.Series([1.0, 1.0], index=[1, 2])

    result = GakidouKingWeighter().extrapolate(person_years, summary, weights)
    assert len(result) == 1
    row = result.iloc[0]
    assert row["rate_observed"] == pytest.approx(0.015)
    # Rates 0.02 at S=1 and 0.01 at S=2 extrapolate to 0.03 at S=0
    assert row["rate_zero"] == pytest.approx(0.03)
    share = 0.25 ** 2
    assert row["rate"] == pytest.approx((1 - share) * 0.015 + share * 0.03)


def test_extrapolate_single_survivor_count(histories):
    """Cells with one survivor count fall back on the observed rate"""
    weighter = GakidouKingWeighter()
    weights = weighter.sibship_weights(histories)
    py = weighter.apply(SiblingDataConverter.to_person_years(histories), weights)

    with pytest.warns(UserWarning, match="Cannot extrapolate"):
        result = weighter.extrapolate(py, histories.sibship_summary(), weights)

    male_30 = result[(result["sex"] == 1) & (result["age_group"].astype(str) == "30-34")].iloc[0]
    assert male_30["rate_zero"] == pytest.approx(male_30["rate_observed"])
    assert male_30["rate"] == pytest.approx(2.0 / 3.0)


def test_survivor_summary_with_frame(histories):
    """Only survivors eligible for interview count as reporters"""
    summary = GakidouKingWeighter().survivor_summary(histories)
    assert list(summary["S"]) == [2, 2, 3]

    weighter = GakidouKingWeighter(sampling_frame=SamplingFrame())
    framed = weighter.survivor_summary(histories)
    # Sibship 20: brother and sister aged 60 are alive but cannot report
    assert list(framed["S"]) == [2, 2, 1]
    assert list(framed["B"]) == [4, 4, 4]


def test_extrapolation_share_with_frame(histories):
    """Ineligible survivors count as lost in the zero-survivor share"""
    weighter = GakidouKingWeighter(sampling_frame=SamplingFrame())
    weights = weighter.sibship_weights(histories)
    share = weighter.extrapolation_share(weighter.survivor_summary(histories), weights)
    # Weighted survivors 2*2 + 2*2 + 4*1 out of 2*4 + 2*4 + 4*4 siblings
    assert share == pytest.approx((1 - 12 / 32) ** 4)
    unframed = GakidouKingWeighter().extrapolation_share(
        histories.sibship_summary(), GakidouKingWeighter().sibship_weights(histories))
    assert share > unframed


def test_extrapolate_uses_eligible_survivors():
    """Rates are regressed on survivors inside the sampling frame"""
    # Respondents 1 and 2 report sibships with two survivors each, but the
    # surviving brother of respondent 1 is aged 55 and outside the frame
    histories = SiblingHistories(
        respondent_id=[1, 1, 1, 2, 2, 2],
        sibship_id=[1, 1, 1, 2, 2, 2],
        sex=[2, 1, 1, 2, 2, 1],
        birth_year=[1980.0, 1955.0, 1975.0, 1980.0, 1982.0, 1975.0],
        death_year=[np.nan, np.nan, 2008.5, np.nan, np.nan, 2008.5],
        survey_year=[2010.0] * 6,
        is_respondent=[True, False, False, True, False, False])
    weighter = GakidouKingWeighter(sampling_frame=SamplingFrame())
    summary = weighter.survivor_summary(histories)
    assert list(summary["S"]) == [1, 2]

    weights = weighter.sibship_weights(histories)
    py = weighter.apply(SiblingDataConverter.to_person_years(histories), weights)
    male_30 = py[(py["sex"] == 1) & (py["age_group"].astype(str) == "30-34")]
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        result = weighter.extrapolate(male_30, summary, weights)
    # Same death and exposure in both sibships: flat in S, no extrapolation slope
    row = result.iloc[0]
    assert row["rate_zero"] == pytest.approx(row["rate_observed"])

    # All survivors counted: a single survivor count, nothing to regress on
    with pytest.warns(UserWarning, match="Cannot extrapolate"):
        GakidouKingWeighter().extrapolate(
            male_30, histories.sibship_summary(), weights)
