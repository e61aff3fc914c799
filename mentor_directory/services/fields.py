"""Allow-list filtering for user field maps and projections."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class UserFieldSchema:
    """Immutable description of which user fields callers may reference."""

    version: str
    columns: frozenset[str]
    virtual: frozenset[str]
    protected: frozenset[str]
    secret: frozenset[str]
    always_returned: tuple[str, ...]

    @property
    def allowed(self) -> frozenset[str]:
        return self.columns | self.virtual

    @property
    def public_columns(self) -> tuple[str, ...]:
        """Columns returned by a projection that names none explicitly."""
        return tuple(name for name in USER_COLUMN_ORDER if name in self.columns - self.secret)

    @property
    def default_projection(self) -> tuple[str, ...]:
        """Every returnable field: public columns plus the virtual ones."""
        return self.public_columns + tuple(sorted(self.virtual))


# Column order for default projections.
USER_COLUMN_ORDER = (
    "id",
    "email",
    "name",
    "password_hash",
    "search_key",
    "type_user",
    "bio",
    "role",
    "location",
    "homepage",
    "company",
    "picture_hash",
    "created_at",
    "token",
    "token_expiry",
)

USER_FIELDS = UserFieldSchema(
    version="2",
    columns=frozenset(USER_COLUMN_ORDER),
    virtual=frozenset({"tags"}),
    protected=frozenset(
        {
            "id",
            "type_user",
            "token",
            "token_expiry",
            "password_hash",
            "search_key",
            "created_at",
        }
    ),
    secret=frozenset({"password", "password_hash"}),
    always_returned=("id", "token", "token_expiry", "type_user"),
)


class FieldFilter:
    """Strips disallowed names from untrusted field maps and projections.

    This is the only place external input is sanitized; the query builder
    downstream rejects anything that is still not allow-listed.
    """

    def __init__(self, schema: UserFieldSchema = USER_FIELDS):
        self.schema = schema

    def fields_to_save(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of ``fields`` safe to persist from a profile update.

        ``password`` is kept as plaintext for the caller to hash.
        """
        allowed = self.schema.allowed | {"password"}
        return {
            key: value
            for key, value in fields.items()
            if key not in self.schema.protected and key in allowed
        }

    def fields_to_return(self, fields: Sequence[str], reveal_type: bool = True) -> list[str]:
        """Return a copy of ``fields`` safe to project back to a caller."""
        dropped = {"id"} | self.schema.secret
        if not reveal_type:
            dropped.add("type_user")

        result: list[str] = []
        for name in fields:
            if name in dropped or name not in self.schema.allowed or name in result:
                continue
            result.append(name)
        return result
