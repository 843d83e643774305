"""Tests for the asymmetric acceptance rule."""

from __future__ import annotations

import pytest

from impact_analysis.services.recommendation import assess, is_acceptable


class TestIsAcceptable:

    def test_positive_clears_ten_times_negative(self) -> None:
        assert is_acceptable(3.0, 0.2)

    def test_positive_misses_threshold(self) -> None:
        assert not is_acceptable(1.0, 0.2)

    def test_vacuous_when_no_negatives(self) -> None:
        assert is_acceptable(0.0, 0.0)

    def test_boundary_is_inclusive(self) -> None:
        assert is_acceptable(5.0, 1.0, ratio=5.0)
        assert not is_acceptable(4.99, 1.0, ratio=5.0)

    def test_custom_ratio(self) -> None:
        assert is_acceptable(1.0, 0.2, ratio=2.0)

    def test_signed_negative_total_is_a_magnitude(self) -> None:
        assert not is_acceptable(1.0, -0.2)
        assert is_acceptable(3.0, -0.2)


class TestAssess:

    def test_splits_positive_and_negative(self) -> None:
        rec = assess({"Environmental": 0.8, "Economic": -0.2, "Social": -0.4, "Governance": 0.0})
        assert rec.positive_total == pytest.approx(0.8)
        assert rec.negative_total == pytest.approx(0.6)
        assert not rec.acceptable
        assert rec.ratio == 10.0

    def test_all_positive(self) -> None:
        rec = assess({"a": 0.1, "b": 0.2})
        assert rec.acceptable
        assert rec.negative_total == 0.0

    def test_empty_scores(self) -> None:
        rec = assess({})
        assert rec.acceptable
        assert (rec.positive_total, rec.negative_total) == (0.0, 0.0)

    def test_acceptable_mix(self) -> None:
        rec = assess({"a": 1.0, "b": 1.0, "c": 1.0, "d": -0.2})
        assert rec.acceptable
        assert rec.margin == pytest.approx(1.0)
