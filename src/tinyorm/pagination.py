"""Page request and page result types (pages are zero-based)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from tinyorm.errors import ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class Pageable:
    """Zero-based page request."""

    page: int = 0
    size: int = 20

    def __post_init__(self) -> None:
        if self.page < 0:
            raise ValidationError("Page index must be >= 0", field="page", value=self.page)
        if self.size < 1:
            raise ValidationError("Page size must be >= 1", field="size", value=self.size)

    @property
    def offset(self) -> int:
        return self.page * self.size


@dataclass
class Page(Generic[T]):
    """One page of results plus totals."""

    content: list[T] = field(default_factory=list)
    pageable: Pageable = field(default_factory=Pageable)
    total_elements: int = 0
    total_pages: int = 0

    @classmethod
    def of(cls, content: list[T], pageable: Pageable, total_elements: int) -> Page[T]:
        total_pages = -(-total_elements // pageable.size)
        return cls(
            content=content,
            pageable=pageable,
            total_elements=total_elements,
            total_pages=total_pages,
        )

    @property
    def has_next(self) -> bool:
        return self.pageable.page + 1 < self.total_pages

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.pageable.page,
            "size": self.pageable.size,
            "total_elements": self.total_elements,
            "total_pages": self.total_pages,
            "count": len(self.content),
        }


__all__ = ["Pageable", "Page"]
