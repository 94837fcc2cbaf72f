"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like application identifiers,
attribute identifiers and labels, ensuring consistency and type safety.
"""

from typing import NewType, Sequence, TypedDict, Union

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
AppId = NewType("AppId", str)                # e.g. 'contacts', 'opportunities', or a numeric custom app id
AttributeId = NewType("AttributeId", str)    # Opaque id the remote API uses for a field or column
SectionId = NewType("SectionId", str)        # Id of a layout section
SessionKey = NewType("SessionKey", str)      # Short-lived key obtained from session login

# A single label, or an ordered path of labels: [section_label, field_label]
LabelPath = Union[str, Sequence[str]]


class BackoffPolicy(TypedDict):
    """Value Object representing retry configuration for one call."""
    max_retries: int
    sleep_seconds: float
    backoff_factor: float


def normalize_label_path(label: LabelPath) -> tuple:
    """Turns a single label or a label sequence into a tuple of labels."""
    if isinstance(label, str):
        return (label,)
    path = tuple(label)
    if not path or len(path) > 2:
        raise ValueError(f"Label path must contain one or two labels, got {path!r}")
    return path
