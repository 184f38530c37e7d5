"""
Pagination value objects shared by every list operation.

Pure domain code: no I/O, no SQLAlchemy.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PageRequest:
    """1-based page number and page size."""

    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.limit < 1:
            raise ValueError(f"limit must be >= 1, got {self.limit}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def clamp(self, max_limit: int = MAX_PAGE_SIZE) -> "PageRequest":
        """Cap ``limit`` at ``max_limit``."""
        if self.limit <= max_limit:
            return self
        return PageRequest(page=self.page, limit=max_limit)


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of results plus the counts a client needs to navigate."""

    items: tuple[T, ...]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.limit) if self.total else 0

    @property
    def has_more(self) -> bool:
        return self.page < self.pages

    def to_dict(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total_count": self.total,
            "total_pages": self.pages,
            "has_more": self.has_more,
        }
