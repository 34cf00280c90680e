"""Share model — grants on a file to one user or to anyone holding the token.

``shared_with`` is ``None`` for a public link.  Every row carries an
unguessable ``token`` that resolves the file without authentication.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class Share(SQLModel, table=True):
    """A share of one file from its owner to a recipient or the public."""

    __tablename__ = "shares"

    id: int | None = Field(default=None, primary_key=True)
    file_id: int = Field(foreign_key="files.id", ondelete="CASCADE", index=True)
    shared_by: int = Field(foreign_key="users.id", ondelete="CASCADE", index=True)
    shared_with: int | None = Field(
        default=None, foreign_key="users.id", ondelete="CASCADE", index=True
    )
    permission: str = Field(default="view")
    token: str = Field(index=True, unique=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
