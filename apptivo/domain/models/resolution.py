"""Result type returned by label resolution."""

from dataclasses import dataclass
from typing import Any, Optional

from .common import AttributeId
from .config import AnyDescriptor


@dataclass(frozen=True)
class ResolvedAttribute:
    """Outcome of resolving a label.

    `found=False` means the label does not exist for this account. A found
    attribute can still have `value=None` when the record leaves it empty.
    """
    attribute_id: Optional[AttributeId]
    value: Any = None
    found: bool = False
    diagnostic: Optional[str] = None
    descriptor: Optional[AnyDescriptor] = None

    @classmethod
    def missing(cls, diagnostic: str) -> "ResolvedAttribute":
        return cls(attribute_id=None, found=False, diagnostic=diagnostic)
