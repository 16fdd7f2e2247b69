import pytest

from cinerate.services.ratings_config import DEFAULT_RATINGS_CONFIG, GlobalPrior, RatingsConfig
from cinerate.services.ratings_math import (
    bayesian_average,
    confidence,
    enhance_stats,
    explanation,
    percentile_bucket,
)

PRIOR = GlobalPrior(global_mean=3.0, min_votes_threshold=10, confidence_constant=25.0)


def test_bayesian_average_no_votes_returns_prior_mean():
    assert bayesian_average(0.0, 0, PRIOR) == 3.0
    assert bayesian_average(4.7, 0, PRIOR) == 3.0


def test_bayesian_average_formula():
    # (25 * 3 + 5 * 10) / (25 + 10)
    assert bayesian_average(5.0, 10, PRIOR) == pytest.approx(125 / 35)


def test_bayesian_average_moves_toward_entity_mean_with_more_votes():
    values = [bayesian_average(4.5, v, PRIOR) for v in (1, 5, 25, 100, 10_000)]
    assert values == sorted(values)
    assert all(3.0 < v <= 4.5 for v in values)
    assert values[-1] == pytest.approx(4.5, abs=0.01)


def test_bayesian_average_with_zero_constant_is_raw_mean():
    prior = GlobalPrior(global_mean=3.0, min_votes_threshold=10, confidence_constant=0.0)
    assert bayesian_average(4.2, 3, prior) == pytest.approx(4.2)


@pytest.mark.parametrize(
    "votes,expected",
    [(0, 0.0), (1, 0.1), (5, 0.5), (9, 0.9), (10, 1.0), (250, 1.0)],
)
def test_confidence(votes, expected):
    assert confidence(votes, PRIOR) == pytest.approx(expected)


def test_confidence_non_positive_threshold_is_full():
    prior = GlobalPrior(global_mean=3.0, min_votes_threshold=0, confidence_constant=25.0)
    assert confidence(0, prior) == 1.0


@pytest.mark.parametrize(
    "avg,expected",
    [
        (5.0, 95.0),
        (4.5, 95.0),
        (4.3, 90.0),
        (4.0, 80.0),
        (3.9, 70.0),
        (3.5, 60.0),
        (3.2, 50.0),
        (3.0, 40.0),
        (2.7, 20.0),
        (2.0, 10.0),
        (1.2, 5.0),
    ],
)
def test_percentile_bucket_steps(avg, expected):
    assert percentile_bucket(avg) == expected


def test_percentile_bucket_custom_steps():
    config = RatingsConfig(percentile_steps=((4.0, 99.0),), percentile_floor=1.0)
    assert percentile_bucket(4.1, config) == 99.0
    assert percentile_bucket(3.9, config) == 1.0


def test_explanation_branches():
    assert "No votes yet" in explanation(0, 0.0, 10)
    assert "small sample" in explanation(3, 0.3, 10)
    assert explanation(12, 1.0, 10).startswith("High confidence")
    assert explanation(12, 0.85, 10).startswith("Reliable")
    assert explanation(12, 0.5, 10) == "Rating based on 12 votes with 50% confidence."


def test_enhance_stats_for_entity_without_votes():
    stats = {"entity_id": "E1", "average_score": 0.0, "total_votes": 0, "score_counts": {}}

    enhanced = enhance_stats(stats, PRIOR, DEFAULT_RATINGS_CONFIG)

    assert enhanced["bayesian_average"] == 3.0
    assert enhanced["confidence"] == 0.0
    assert enhanced["percentile"] == 40.0
    assert "prior" in enhanced["explanation"]


def test_enhance_stats_at_threshold_all_fives():
    stats = {"entity_id": "E1", "average_score": 5.0, "total_votes": 10, "score_counts": {5: 10}}

    enhanced = enhance_stats(stats, PRIOR)

    assert enhanced["confidence"] == 1.0
    assert 3.0 < enhanced["bayesian_average"] < 5.0
    assert enhanced["score_counts"] == {5: 10}
    assert enhanced["explanation"].startswith("High confidence")
