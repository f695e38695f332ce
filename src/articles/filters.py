"""Query filters for article listings."""

import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .lifecycle import ArticleStatus


def _positive_int(name: str, raw: Any, minimum: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer") from None
    if value < minimum:
        raise ValueError(f"{name} must be at least {minimum}")
    return value


@dataclass(frozen=True)
class ArticleFilters:
    """Restrictions applied to an article queryset.

    Every field is optional. ``offset`` only skips rows; ``limit`` caps the
    number returned after the skip.
    """

    status: Optional[str] = None
    category: Optional[str] = None
    author: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0

    def __post_init__(self):
        if self.status is not None:
            parsed = ArticleStatus.parse(self.status)
            if parsed is None:
                raise ValueError(f"Unknown status: {self.status}")
            object.__setattr__(self, "status", parsed.value)
        if self.author is not None:
            try:
                object.__setattr__(self, "author", str(uuid.UUID(str(self.author))))
            except ValueError:
                raise ValueError(f"Invalid author id: {self.author}") from None
        if self.limit is not None:
            object.__setattr__(self, "limit", _positive_int("limit", self.limit, 1))
        object.__setattr__(self, "offset", _positive_int("offset", self.offset, 0))

    @classmethod
    def from_query_params(cls, params: Mapping[str, Any], **overrides) -> "ArticleFilters":
        """Build filters from request query parameters; empty values are ignored."""
        values: dict[str, Any] = {}
        for name in ("status", "category", "author", "limit", "offset"):
            raw = params.get(name)
            if raw not in (None, ""):
                values[name] = raw
        values.update(overrides)
        return cls(**values)

    def apply(self, queryset):
        if self.status is not None:
            queryset = queryset.filter(status=self.status)
        if self.category is not None:
            queryset = queryset.filter(category__slug=self.category)
        if self.author is not None:
            queryset = queryset.filter(author_id=self.author)
        queryset = queryset.order_by("-published_at", "-created_at")
        if self.limit is not None:
            return queryset[self.offset : self.offset + self.limit]
        if self.offset:
            return queryset[self.offset :]
        return queryset


__all__ = ["ArticleFilters"]
