import math
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def _as_int(value: int | str | None) -> int | None:
    # Query strings arrive raw; anything non-numeric counts as absent
    if value is None or isinstance(value, int):
        return value
    try:
        return int(value.strip())
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class PageQuery:
    """List filters with page/limit already clamped to valid bounds."""
    page: int = 1
    limit: int = DEFAULT_LIMIT
    theme: str | None = None
    search: str | None = None

    @classmethod
    def clamp(
        cls,
        page: int | str | None = None,
        limit: int | str | None = None,
        theme: str | None = None,
        search: str | None = None,
    ) -> "PageQuery":
        """page < 1 becomes 1; limit is forced into [1, MAX_LIMIT].

        Unparseable values fall back to the defaults.
        """
        page, limit = _as_int(page), _as_int(limit)
        return cls(
            page=max(page or 1, 1),
            limit=DEFAULT_LIMIT if limit is None else min(max(limit, 1), MAX_LIMIT),
            theme=theme or None,
            search=search.strip() if search and search.strip() else None,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(slots=True)
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    page: int = 1
    limit: int = DEFAULT_LIMIT
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0
