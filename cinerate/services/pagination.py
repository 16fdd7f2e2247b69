"""List options shared by the vote listing and voter profile views."""

from dataclasses import dataclass
from typing import Optional

from ..core.exceptions import ValidationException

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
SORT_FIELDS = ("created_at", "updated_at", "score")
SORT_ORDERS = ("asc", "desc")


@dataclass(frozen=True)
class ListOptions:
    limit: int = DEFAULT_LIMIT
    offset: int = 0
    sort_by: str = "created_at"
    order: str = "desc"


def validate_list_options(
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    sort_by: Optional[str] = None,
    order: Optional[str] = None,
) -> ListOptions:
    """Apply defaults and reject out-of-range paging or unknown sort keys."""
    opts = ListOptions(
        limit=DEFAULT_LIMIT if limit is None else limit,
        offset=0 if offset is None else offset,
        sort_by=sort_by or "created_at",
        order=(order or "desc").lower(),
    )
    if not 1 <= opts.limit <= MAX_LIMIT:
        raise ValidationException(
            f"limit must be between 1 and {MAX_LIMIT}",
            code="INVALID_LIMIT",
            details={"limit": opts.limit},
        )
    if opts.offset < 0:
        raise ValidationException(
            "offset cannot be negative", code="INVALID_OFFSET", details={"offset": opts.offset}
        )
    if opts.sort_by not in SORT_FIELDS:
        raise ValidationException(
            f"sort_by must be one of {', '.join(SORT_FIELDS)}",
            code="INVALID_SORT_FIELD",
            details={"sort_by": opts.sort_by},
        )
    if opts.order not in SORT_ORDERS:
        raise ValidationException(
            "order must be 'asc' or 'desc'", code="INVALID_SORT_ORDER", details={"order": opts.order}
        )
    return opts
