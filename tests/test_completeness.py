"""
Tests for death reporting completeness.
"""
import numpy as np
import pytest
from sibsurv.data import SiblingDataConverter
from sibsurv.estimation import CompletenessSchedule


def test_masquelier_schedule():
    """Test the published completeness estimates"""
    schedule = CompletenessSchedule.masquelier_2012()
    assert schedule.completeness_for(2, 7) == pytest.approx(0.83)
    assert schedule.completeness_for(1, 4) == pytest.approx(0.91)
    assert schedule.completeness_for(1, 7) == pytest.approx(1.0)
    assert schedule.completeness_for(2, 1) == pytest.approx(1.0)
    # The last band is open-ended
    assert schedule.completeness_for(2, 25) == pytest.approx(1.0)


def test_vectorized_lookup():
    """Test lookups on arrays"""
    schedule = CompletenessSchedule([0, 5], male=[0.9, 0.8], female=[0.95, 0.7])
    values = schedule.completeness_for(np.array([1, 2, 1, 2]), np.array([0, 0, 5, 6]))
    assert np.allclose(values, [0.9, 0.95, 0.8, 0.7])


def test_invalid_schedules():
    """Test schedule validation"""
    with pytest.raises(ValueError):
        CompletenessSchedule([1, 5], male=[1.0, 1.0], female=[1.0, 1.0])
    with pytest.raises(ValueError):
        CompletenessSchedule([0, 5], male=[1.0], female=[1.0, 1.0])
    with pytest.raises(ValueError):
        CompletenessSchedule([0, 5], male=[1.0, 1.2], female=[1.0, 1.0])
    with pytest.raises(ValueError):
        CompletenessSchedule([0, 5], male=[1.0, 0.0], female=[1.0, 1.0])

    schedule = CompletenessSchedule([0], male=[1.0], female=[1.0])
    with pytest.raises(ValueError):
        schedule.completeness_for(3, 1)
    with pytest.raises(ValueError):
        schedule.completeness_for(1, -1)


def test_adjust(histories):
    """Deaths are inflated by the inverse of completeness"""
    py = SiblingDataConverter.to_person_years(histories)
    schedule = CompletenessSchedule([0, 2], male=[0.5, 0.8], female=[1.0, 1.0])
    adjusted = schedule.adjust(py)

    # Male deaths 3.5 and 1.8 years before the survey
    assert adjusted["death"].sum() == pytest.approx(2 / 0.8 + 1 / 0.5)
    assert np.allclose(adjusted["exposure"], py["exposure"])
    # Input is not modified
    assert py["death"].sum() == 3
