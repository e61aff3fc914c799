"""User directory: the entry point the HTTP layer calls."""

import logging
import re
import unicodedata
from collections.abc import Mapping, Sequence
from datetime import timedelta
from typing import Any

from sqlalchemy import func, insert, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from mentor_directory.config import get_settings
from mentor_directory.errors import (
    ContactSupport,
    DatabaseError,
    DuplicatedEmail,
    InvalidField,
    NotFound,
    UndefinedProblem,
    storage_errors,
)
from mentor_directory.models.enums import UserType
from mentor_directory.models.user import User
from mentor_directory.services.auth import get_password_hash, verify_password
from mentor_directory.services.fields import USER_FIELDS, FieldFilter, UserFieldSchema
from mentor_directory.services.query_builder import QueryBuilder
from mentor_directory.services.tags import TagReconciler
from mentor_directory.services.tokens import TokenManager
from mentor_directory.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

NON_ALNUM = re.compile(r"[^a-z0-9]+")

# Returned to the account owner only
PRIVATE_ROW_KEYS = ("id", "token", "token_expiry")

SEARCH_KEY_ATTEMPTS = 5


def slugify(name: str) -> str:
    """ASCII, lower-case, alphanumerics only: "Bob Smith" -> "bobsmith"."""
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    return NON_ALNUM.sub("", ascii_name.lower())


def next_search_key(slug: str, taken: set[str]) -> str:
    """Return ``slug`` or ``slug`` plus the smallest free numeric suffix."""
    if slug not in taken:
        return slug
    suffix = 1
    while f"{slug}{suffix}" in taken:
        suffix += 1
    return f"{slug}{suffix}"


class UserDirectory:
    """Create, read and update users; issue and verify their sessions.

    Each public method runs in its own unit of work. Storage failures leave
    as members of the error taxonomy in ``mentor_directory.errors``.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        schema: UserFieldSchema = USER_FIELDS,
        token_lifetime: timedelta | None = None,
    ):
        if token_lifetime is None:
            token_lifetime = timedelta(days=get_settings().token_lifetime_days)
        self.uow = UnitOfWork(session_factory)
        self.filter = FieldFilter(schema)
        self.builder = QueryBuilder(User.__table__, schema)
        self.tags = TagReconciler()
        self.tokens = TokenManager(self.builder, lifetime=token_lifetime)

    # Create

    def create_user(self, info: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a user, issue its first session and derive its search key."""
        email = info["email"].lower()
        type_user = UserType(info.get("type_user", UserType.USER.value)).value
        session_token = self.tokens.new_token()

        with storage_errors(UndefinedProblem), self.uow.transaction() as session:
            try:
                result = session.execute(
                    insert(User.__table__).values(
                        email=email,
                        name=info["name"],
                        password_hash=get_password_hash(info["password"]),
                        type_user=type_user,
                        token=session_token.token,
                        token_expiry=session_token.token_expiry,
                    )
                )
            except IntegrityError as e:
                logger.info(f"Rejected duplicate email {email}")
                raise DuplicatedEmail() from e
            except SQLAlchemyError as e:
                raise UndefinedProblem() from e

            user_id = result.inserted_primary_key[0]
            try:
                search_key = self._assign_search_key(session, user_id, info["name"], type_user)
            except DatabaseError as e:
                raise UndefinedProblem(e.details) from e

        logger.info(f"Created {type_user} {user_id} with search key {search_key!r}")
        return {
            "email": email,
            "name": info["name"],
            "search_key": search_key,
            "token": session_token.token,
            "token_expiry": session_token.token_expiry,
        }

    def _assign_search_key(
        self, session: Session, user_id: int, name: str, type_user: str
    ) -> str:
        slug = slugify(name) or type_user
        users = User.__table__
        taken = set(
            session.execute(
                select(users.c.search_key).where(
                    users.c.search_key.like(f"{slug}%"), users.c.id != user_id
                )
            ).scalars()
        )
        for attempt in range(1, SEARCH_KEY_ATTEMPTS + 1):
            search_key = next_search_key(slug, taken)
            try:
                with session.begin_nested():
                    self.builder.update(session, {"id": user_id}, {"search_key": search_key})
            except DatabaseError as e:
                # A concurrent registration claimed the key after we read it
                if not isinstance(e.__cause__, IntegrityError) or attempt == SEARCH_KEY_ATTEMPTS:
                    raise
                logger.info(f"Search key {search_key!r} was just taken, trying the next one")
                taken.add(search_key)
                continue
            return search_key

    # Read

    def get_users(
        self,
        search: Mapping[str, Any],
        projection: Sequence[str] | None = None,
        reveal_type: bool = True,
    ) -> list[dict[str, Any]]:
        """Return rows matching ``search`` limited to allow-listed fields.

        ``id``, ``token`` and ``token_expiry`` are always part of a row.
        ``tags`` is spliced in for mentor searches unless the projection
        leaves it out.
        """
        if projection is not None:
            projection = self.filter.fields_to_return(projection, reveal_type=reveal_type)

        with storage_errors(DatabaseError), self.uow.transaction() as session:
            return self._get_users(session, search, projection, reveal_type)

    def _get_users(
        self,
        session: Session,
        search: Mapping[str, Any],
        projection: Sequence[str] | None,
        reveal_type: bool = True,
    ) -> list[dict[str, Any]]:
        rows, built = self.builder.fetch(session, search, projection)
        if built.include_tags and rows:
            tags = self.tags.load_tags_for(session, [row["id"] for row in rows])
            for row in rows:
                row["tags"] = tags.get(row["id"], [])
        if not reveal_type:
            for row in rows:
                row.pop("type_user", None)
        return rows

    def get_user(
        self,
        user_id: int,
        type_user: str,
        projection: Sequence[str] | None = None,
    ) -> dict[str, Any]:
        """Return one user's profile by id and type, tags included for mentors."""
        return self._get_one({"id": user_id, "type_user": type_user}, projection)

    def get_user_by_search_key(
        self,
        search_key: str,
        type_user: str = UserType.MENTOR.value,
        projection: Sequence[str] | None = None,
    ) -> dict[str, Any]:
        """Public profile lookup; session fields are not returned."""
        row = self._get_one({"type_user": type_user, "search_key": search_key}, projection)
        return self._public(row)

    def _get_one(self, search: dict[str, Any], projection: Sequence[str] | None) -> dict[str, Any]:
        if projection is not None:
            projection = self.filter.fields_to_return(projection)

        with storage_errors(DatabaseError), self.uow.transaction() as session:
            rows = self._get_users(session, search, projection)
        if not rows:
            raise NotFound()
        if len(rows) > 1:
            raise ContactSupport()
        return rows[0]

    def search_mentors(self, query: str) -> list[dict[str, Any]]:
        """Find mentors whose name contains any term or who carry a term as a tag."""
        terms = [term.lower() for term in query.split()]
        if not terms:
            return []

        users = User.__table__
        by_name = (
            select(users.c.id)
            .where(users.c.type_user == UserType.MENTOR.value)
            .where(
                or_(*[func.lower(users.c.name).contains(term, autoescape=True) for term in terms])
            )
        )
        with storage_errors(DatabaseError), self.uow.transaction() as session:
            ids = list(session.execute(by_name).scalars())
            ids.extend(self.tags.find_users_by_tags(session, terms))
            ids = list(dict.fromkeys(ids))
            if not ids:
                return []
            rows = self._get_users(session, {"id": ids, "type_user": UserType.MENTOR.value}, None)
        return [self._public(row) for row in rows]

    @staticmethod
    def _public(row: dict[str, Any]) -> dict[str, Any]:
        return {key: value for key, value in row.items() if key not in PRIVATE_ROW_KEYS}

    # Update

    def set_user(self, search: Mapping[str, Any], updates: Mapping[str, Any]) -> None:
        """Apply a profile update to the users matched by ``search``.

        Protected and unknown fields are dropped. A ``tags`` key replaces the
        mentor's tags (an empty list clears them); without it tags are left
        alone. Raises NotFound when ``search`` matches nobody.
        """
        if not search:
            raise InvalidField("search")

        values = self.filter.fields_to_save(updates)
        if "password" in values:
            values["password_hash"] = get_password_hash(values.pop("password"))
        if "tags" in values and values["tags"] is None:
            del values["tags"]

        with storage_errors(DatabaseError), self.uow.transaction() as session:
            matched, _ = self.builder.fetch(session, search, [])
            if not matched:
                raise NotFound()

            _, built = self.builder.update(session, search, values)
            if built.tags is not None:
                for row in matched:
                    if UserType(row["type_user"]).has_tags:
                        self.tags.reconcile(session, row["id"], built.tags)
                    else:
                        logger.debug(f"Ignoring tags for non-mentor user {row['id']}")

    # Sessions

    def verify_token(self, token: str) -> dict[str, Any]:
        """Return ``{"id", "type_user"}`` for a live token or raise NotLoggedIn."""
        with storage_errors(DatabaseError), self.uow.transaction() as session:
            verified = self.tokens.verify(session, token)
        return {"id": verified.id, "type_user": verified.type_user}

    def login(self, email: str, password: str, type_user: str | None = None) -> dict[str, Any]:
        """Check credentials and return a live session for the account."""
        email = email.lower()
        search: dict[str, Any] = {"email": email}
        if type_user is not None:
            search["type_user"] = type_user

        with storage_errors(DatabaseError), self.uow.transaction() as session:
            rows, _ = self.builder.fetch(session, search, ["email"])
            if len(rows) > 1:
                logger.warning(f"{len(rows)} accounts share the email {email}")
                raise ContactSupport()
            if not rows:
                raise NotFound()

            # password_hash is never projected; read it directly
            users = User.__table__
            password_hash = session.execute(
                select(users.c.password_hash).where(users.c.id == rows[0]["id"])
            ).scalar_one()
            if not verify_password(password, password_hash):
                raise NotFound()

            row = rows[0]
            session_token = self.tokens.renew_if_expired(
                session, row["id"], row["token"], row["token_expiry"]
            )

        logger.info(f"User {row['id']} logged in")
        return {
            "email": row["email"],
            "token": session_token.token,
            "token_expiry": session_token.token_expiry,
        }
