"""Bearer credentials: signed JWTs carrying the user id and token generation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import ExpiredSignatureError, JWTError, jwt

from homecloud.exceptions import AuthError

ALGORITHM = "HS256"
BEARER_SCHEME = "bearer"


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Decoded credential.

    Attributes:
        user_id: Subject of the credential.
        token_version: The user's token generation when it was issued.
        expires_at: Expiry instant.
    """

    user_id: int
    token_version: int
    expires_at: datetime


def extract_bearer(credential: str | None) -> str:
    """Return the token from ``"Bearer <token>"`` or a bare token.

    Raises ``AuthError`` when nothing usable is present.
    """
    if not credential or not credential.strip():
        raise AuthError("No token provided")
    credential = credential.strip()
    scheme, _, rest = credential.partition(" ")
    if scheme.lower() == BEARER_SCHEME:
        credential = rest.strip()
    if not credential:
        raise AuthError("No token provided")
    return credential


class TokenCodec:
    """Issue and verify HS256 credentials.

    The ``tv`` claim holds the user's token generation; the gate compares
    it with the stored counter so a bump invalidates every older token.
    """

    def __init__(self, secret_key: str, ttl_seconds: int) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.ttl = timedelta(seconds=ttl_seconds)

    def issue(
        self, user_id: int, token_version: int, *, now: datetime | None = None
    ) -> str:
        issued_at = now or datetime.now(UTC)
        claims = {
            "sub": str(user_id),
            "tv": token_version,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.ttl).timestamp()),
        }
        return jwt.encode(claims, self._secret_key, algorithm=ALGORITHM)

    def decode(self, token: str) -> TokenClaims:
        """Verify signature and expiry; raise ``AuthError`` on any failure."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])
        except ExpiredSignatureError as e:
            raise AuthError("Token expired") from e
        except JWTError as e:
            raise AuthError("Invalid token") from e

        try:
            user_id = int(payload["sub"])
            token_version = int(payload["tv"])
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
        except (KeyError, TypeError, ValueError) as e:
            raise AuthError("Invalid token") from e
        return TokenClaims(user_id=user_id, token_version=token_version, expires_at=expires_at)
