"""Explicit tenant context passed into every store-backed operation."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TenantContext:
    """
    The caller on whose behalf an operation runs.

    Every store query is filtered by ``user_id``. An unauthenticated context
    carries ``None`` and short-circuits reads to empty results.
    """

    user_id: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @classmethod
    def anonymous(cls) -> "TenantContext":
        return cls(user_id=None)
