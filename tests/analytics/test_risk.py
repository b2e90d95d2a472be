"""Tests for risk assessment and the numeric helpers behind it."""

import pytest

from compliance_pulse.analytics import assess_risk, detect_outliers, linear_slope, population_std


class TestStats:
    def test_population_std(self):
        assert population_std([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)
        assert population_std([5]) == 0.0

    def test_linear_slope(self):
        assert linear_slope([1, 2, 3, 4]) == pytest.approx(1.0)
        assert linear_slope([5, 5, 5]) == 0.0
        assert linear_slope([3]) == 0.0

    def test_detect_outliers(self):
        assert detect_outliers([10, 11, 12, 11, 10, 100]) == [100]
        assert detect_outliers([1, 100, 1]) == []


class TestAssessRisk:
    def test_empty_is_low(self):
        assert assess_risk([]).level == "LOW"

    def test_healthy(self, make_series):
        risk = assess_risk(make_series([95] * 5))
        assert risk.level == "LOW"
        assert risk.factors == ()
        assert risk.metrics["averageScore"] == 95.0

    def test_low_average_is_high(self, make_series):
        risk = assess_risk(make_series([60] * 5))
        assert risk.level == "HIGH"
        assert "Low average compliance score" in risk.factors

    def test_moderate_average_is_medium(self, make_series):
        assert assess_risk(make_series([80] * 5)).level == "MEDIUM"

    def test_volatility_raises_to_medium(self, make_series):
        risk = assess_risk(make_series([100, 60, 100, 60, 100, 100]))
        assert risk.level == "MEDIUM"
        assert "High score volatility" in risk.factors

    def test_rising_violations_is_high(self, make_snapshot):
        series = [make_snapshot(95, i, total_violations=5 * i) for i in range(5)]
        risk = assess_risk(series)
        assert risk.level == "HIGH"
        assert "Increasing violation trend" in risk.factors

    def test_to_dict(self, make_series):
        data = assess_risk(make_series([60] * 5)).to_dict()
        assert data["level"] == "HIGH"
        assert isinstance(data["factors"], list)
