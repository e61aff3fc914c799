"""Tag vocabulary and mentor tag-link reconciliation."""

import logging
from collections.abc import Iterable

from sqlalchemy import Table, delete, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from mentor_directory.errors import DatabaseError, storage_errors
from mentor_directory.models.enums import UserType
from mentor_directory.models.tag import Tag, UserTag
from mentor_directory.models.user import User

logger = logging.getLogger(__name__)


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """Lower-case, trim and de-duplicate tags, keeping first-seen order."""
    result: list[str] = []
    for tag in tags:
        normalized = str(tag).strip().lower()
        if normalized and normalized not in result:
            result.append(normalized)
    return result


def insert_ignoring_conflicts(session: Session, table: Table, rows: list[dict]):
    """INSERT rows, skipping any that collide with a unique constraint."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        statement = postgresql.insert(table).values(rows).on_conflict_do_nothing()
    elif dialect == "sqlite":
        statement = sqlite.insert(table).values(rows).on_conflict_do_nothing()
    elif dialect in ("mysql", "mariadb"):
        statement = insert(table).values(rows).prefix_with("IGNORE")
    else:
        raise DatabaseError(f"unsupported dialect {dialect}")
    return session.execute(statement)


class TagReconciler:
    """Keeps the users_tags links of a mentor equal to a desired tag set."""

    def __init__(self):
        self.tags = Tag.__table__
        self.links = UserTag.__table__

    def reconcile(self, session: Session, user_id: int, desired_tags: Iterable[str]) -> None:
        """Make the stored links for ``user_id`` match ``desired_tags``.

        Runs inside the caller's transaction. An empty ``desired_tags``
        removes every link for the user.
        """
        tags = normalize_tags(desired_tags)
        with storage_errors():
            tag_ids: list[int] = []
            if tags:
                insert_ignoring_conflicts(session, self.tags, [{"tag": tag} for tag in tags])
                tag_ids = list(
                    session.execute(
                        select(self.tags.c.id).where(self.tags.c.tag.in_(tags))
                    ).scalars()
                )
                insert_ignoring_conflicts(
                    session,
                    self.links,
                    [{"user_id": user_id, "tag_id": tag_id} for tag_id in tag_ids],
                )

            stale = delete(self.links).where(self.links.c.user_id == user_id)
            if tag_ids:
                stale = stale.where(self.links.c.tag_id.not_in(tag_ids))
            removed = session.execute(stale).rowcount

        logger.info(f"Reconciled tags for user {user_id}: {tags} ({removed} stale links removed)")

    def load_tags_for(self, session: Session, user_ids: Iterable[int]) -> dict[int, list[str]]:
        """Return the tags of every requested user in one query."""
        ids = list(dict.fromkeys(user_ids))
        result: dict[int, list[str]] = {user_id: [] for user_id in ids}
        if not ids:
            return result

        query = (
            select(self.links.c.user_id, self.tags.c.tag)
            .join(self.tags, self.tags.c.id == self.links.c.tag_id)
            .where(self.links.c.user_id.in_(ids))
            .order_by(self.links.c.user_id, self.tags.c.tag)
        )
        with storage_errors():
            for user_id, tag in session.execute(query):
                result.setdefault(user_id, []).append(tag)
        return result

    def find_users_by_tags(self, session: Session, tags: Iterable[str]) -> list[int]:
        """Return ids of mentors linked to any of ``tags``."""
        normalized = normalize_tags(tags)
        if not normalized:
            return []

        users = User.__table__
        query = (
            select(self.links.c.user_id)
            .join(self.tags, self.tags.c.id == self.links.c.tag_id)
            .join(users, users.c.id == self.links.c.user_id)
            .where(self.tags.c.tag.in_(normalized))
            .where(users.c.type_user == UserType.MENTOR.value)
            .distinct()
        )
        with storage_errors():
            return list(session.execute(query).scalars())
