"""Cache keys and TTLs for the derived rating views."""

ENTITY_STATS_TTL = 15 * 60
VOTER_STATS_TTL = 5 * 60
VOTER_PROFILE_TTL = 10 * 60


def entity_stats_key(entity_id: str) -> str:
    return f"entity_stats:{entity_id}"


def voter_stats_key(voter_id: str) -> str:
    return f"voter_stats:{voter_id}"


def voter_profile_key(voter_id: str, limit: int, offset: int, sort_by: str, order: str) -> str:
    return f"voter_profile:{voter_id}:{limit}:{offset}:{sort_by}:{order}"


def voter_profile_pattern(voter_id: str) -> str:
    """Glob matching every cached profile page of a voter."""
    return f"voter_profile:{voter_id}:*"
