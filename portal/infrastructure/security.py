"""Access token helpers.

Tokens are issued by the portal's authentication service; this module only
verifies them and extracts the caller identity.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from portal.config import get_settings
from portal.domain.entities import Principal

ALGORITHM = "HS256"


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    settings = get_settings()
    expire = datetime.now(tz=timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    return jwt.encode({**data, "exp": expire}, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise ValueError("Could not validate credentials") from exc


def principal_from_token(token: str) -> Principal:
    """Return the :class:`Principal` described by ``token``.

    Raises ``ValueError`` when the token is invalid or lacks a subject.
    """

    payload = decode_access_token(token)
    subject = payload.get("sub")
    if subject is None or subject == "":
        raise ValueError("Token without subject")
    return Principal(
        id=str(subject),
        name=str(payload.get("name") or ""),
        role=str(payload.get("role") or "user"),
    )
