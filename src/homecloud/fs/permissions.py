"""Share permission levels."""

from __future__ import annotations

from enum import Enum

from homecloud.exceptions import ValidationError


class SharePermission(str, Enum):
    """Permission level carried by a share."""

    VIEW = "view"
    EDIT = "edit"

    @classmethod
    def parse(cls, value: str | SharePermission) -> SharePermission:
        """Return the member for *value* or raise ``ValidationError``."""
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(repr(p.value) for p in cls)
            raise ValidationError(
                f"Invalid permission: {value!r}. Must be one of {allowed}."
            ) from None
