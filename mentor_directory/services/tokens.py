"""Session token issuance, verification and renewal.

A session is the ``token``/``token_expiry`` pair stored on the user row.
It starts absent, becomes live when issued, expires when ``token_expiry``
passes, and becomes live again on the next renewal.
"""

import hashlib
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from mentor_directory.errors import NotLoggedIn
from mentor_directory.services.query_builder import QueryBuilder

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LIFETIME = timedelta(days=31)


def utcnow() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as UTC text."""
    if value.tzinfo is None:
        raise ValueError("naive datetimes are not accepted")
    return value.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse stored UTC text; None when absent or malformed."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if not value:
        return None
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        logger.warning(f"Unparseable token expiry: {value!r}")
        return None


@dataclass(frozen=True)
class SessionToken:
    token: str
    expires_at: datetime

    @property
    def token_expiry(self) -> str:
        return format_timestamp(self.expires_at)


@dataclass(frozen=True)
class VerifiedUser:
    id: int
    type_user: str


class TokenManager:
    """Issues, verifies and renews session tokens on the users table."""

    def __init__(
        self,
        builder: QueryBuilder,
        lifetime: timedelta = DEFAULT_LIFETIME,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.builder = builder
        self.lifetime = lifetime
        self.clock = clock

    def new_token(self, salt: str | None = None) -> SessionToken:
        """Digest a salt and a fresh expiry into a new token."""
        if salt is None:
            salt = secrets.token_hex(16)
        expires_at = self.clock() + self.lifetime
        digest = hashlib.sha256(f"{salt}{format_timestamp(expires_at)}".encode()).hexdigest()
        return SessionToken(token=digest, expires_at=expires_at)

    def is_expired(self, expiry: str | datetime | None) -> bool:
        """True unless ``expiry`` is strictly after now."""
        expires_at = parse_timestamp(expiry)
        return expires_at is None or not expires_at > self.clock()

    def _store(self, session: Session, user_id: int, values: dict[str, str]) -> None:
        self.builder.update(session, {"id": user_id}, values)

    def issue(self, session: Session, user_id: int) -> SessionToken:
        """Persist a brand new token and expiry for ``user_id``."""
        fresh = self.new_token()
        self._store(session, user_id, {"token": fresh.token, "token_expiry": fresh.token_expiry})
        logger.info(f"Issued session token for user {user_id}")
        return fresh

    def verify(self, session: Session, token: str) -> VerifiedUser:
        """Resolve ``token`` to exactly one user with a live session."""
        if not token:
            raise NotLoggedIn()

        rows, _ = self.builder.fetch(session, {"token": token}, [])
        if not rows:
            raise NotLoggedIn()
        if len(rows) > 1:
            logger.warning(f"Token shared by {len(rows)} users; rejecting")
            raise NotLoggedIn()

        row = rows[0]
        if self.is_expired(row["token_expiry"]):
            logger.info(f"Expired token presented for user {row['id']}")
            raise NotLoggedIn()
        return VerifiedUser(id=row["id"], type_user=row["type_user"])

    def renew_if_expired(
        self,
        session: Session,
        user_id: int,
        current_token: str | None,
        current_expiry: str | datetime | None,
    ) -> SessionToken:
        """Replace an expired or absent token; otherwise extend its expiry."""
        if not current_token or self.is_expired(current_expiry):
            return self.issue(session, user_id)

        extended = SessionToken(token=current_token, expires_at=self.clock() + self.lifetime)
        self._store(session, user_id, {"token_expiry": extended.token_expiry})
        return extended
