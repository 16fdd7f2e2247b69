from __future__ import annotations

from typing import Dict, TypedDict

from .ratings_config import DEFAULT_RATINGS_CONFIG, GlobalPrior, RatingsConfig


class EntityRatingStats(TypedDict):
    entity_id: str
    average_score: float
    total_votes: int
    score_counts: Dict[int, int]


class EnhancedRatingStats(EntityRatingStats):
    bayesian_average: float
    confidence: float
    percentile: float
    explanation: str


def bayesian_average(entity_mean: float, vote_count: int, prior: GlobalPrior) -> float:
    """
    Shrink an entity mean toward the global prior.

    (K * m + R * v) / (K + v) with K the confidence constant, m the global mean,
    R the entity mean and v the vote count.
    """
    m = float(prior.global_mean)
    v = float(vote_count)
    if v <= 0:
        return m
    k = float(prior.confidence_constant)
    return (k * m + float(entity_mean) * v) / (k + v)


def confidence(vote_count: int, prior: GlobalPrior) -> float:
    threshold = prior.min_votes_threshold
    if threshold <= 0 or vote_count >= threshold:
        return 1.0
    return max(0.0, float(vote_count) / float(threshold))


def percentile_bucket(bayesian_avg: float, config: RatingsConfig = DEFAULT_RATINGS_CONFIG) -> float:
    for minimum, percentile in config.percentile_steps:
        if bayesian_avg >= minimum:
            return percentile
    return config.percentile_floor


def explanation(
    total_votes: int,
    confidence_value: float,
    min_votes_threshold: int,
    config: RatingsConfig = DEFAULT_RATINGS_CONFIG,
) -> str:
    if total_votes == 0:
        return "No votes yet. Score shows the global prior."
    if total_votes < min_votes_threshold:
        return (
            f"Rating adjusted for small sample size ({total_votes} votes). "
            "The smoothed average leans on the global prior."
        )
    if confidence_value >= config.high_confidence:
        return f"High confidence rating based on {total_votes} votes."
    if confidence_value >= config.reliable_confidence:
        return f"Reliable rating based on {total_votes} votes."
    return f"Rating based on {total_votes} votes with {confidence_value * 100:.0f}% confidence."


def enhance_stats(
    stats: EntityRatingStats,
    prior: GlobalPrior,
    config: RatingsConfig = DEFAULT_RATINGS_CONFIG,
) -> EnhancedRatingStats:
    total = int(stats["total_votes"])
    smoothed = bayesian_average(stats["average_score"], total, prior)
    conf = confidence(total, prior)
    return {
        "entity_id": stats["entity_id"],
        "average_score": stats["average_score"],
        "total_votes": total,
        "score_counts": dict(stats["score_counts"]),
        "bayesian_average": round(smoothed, 2),
        "confidence": round(conf, 4),
        "percentile": percentile_bucket(smoothed, config),
        "explanation": explanation(total, conf, prior.min_votes_threshold, config),
    }
