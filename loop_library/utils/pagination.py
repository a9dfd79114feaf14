"""Pagination utilities for the public loop listing."""

from dataclasses import dataclass

from sqlalchemy.orm import Query as SQLAlchemyQuery

from loop_library.core.errors import ValidationError


# Pagination limits (page is 0-indexed)
DEFAULT_PAGE = 0
MAX_LIMIT = 128
DEFAULT_LIMIT = MAX_LIMIT
# Offsets must fit a signed 32-bit driver integer
MAX_OFFSET = 2**31 - 1


@dataclass
class PageParams:
    """Pagination parameters from query string."""
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return self.page * self.limit


def parse_page_params(page: str | None, limit: str | None) -> PageParams:
    """
    Parse raw `page`/`limit` query values.

    Raises ValidationError for non-numeric values, negatives, a limit above
    MAX_LIMIT, or a page whose offset exceeds MAX_OFFSET.
    """
    errors: list[dict[str, str]] = []
    parsed_page = DEFAULT_PAGE
    parsed_limit = DEFAULT_LIMIT

    if page not in (None, ""):
        try:
            parsed_page = int(page)
        except ValueError:
            errors.append({"field": "page", "message": "Page must be a number"})
        else:
            if parsed_page < 0:
                errors.append({"field": "page", "message": "Page must be zero or greater"})

    if limit not in (None, ""):
        try:
            parsed_limit = int(limit)
        except ValueError:
            errors.append({"field": "limit", "message": "Limit must be a number"})
        else:
            if parsed_limit < 1:
                errors.append({"field": "limit", "message": "Limit must be at least 1"})
            elif parsed_limit > MAX_LIMIT:
                errors.append(
                    {"field": "limit", "message": f"Limit must be less than or equal to {MAX_LIMIT}"}
                )

    if not errors and parsed_page * parsed_limit > MAX_OFFSET:
        errors.append({"field": "page", "message": "Page is out of range"})

    if errors:
        raise ValidationError(errors[0]["message"], errors=errors)
    return PageParams(page=parsed_page, limit=parsed_limit)


def paginate_query(query: SQLAlchemyQuery, params: PageParams) -> tuple[list, int]:
    """
    Apply pagination to a SQLAlchemy query.

    Returns:
        (items, total_count)
    """
    total = query.count()
    items = query.offset(params.offset).limit(params.limit).all()
    return items, total
