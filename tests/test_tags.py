"""Tag reconciler tests."""

from unittest.mock import MagicMock

import pytest

from mentor_directory.errors import DatabaseError
from mentor_directory.models import Tag, User, UserTag
from mentor_directory.services.tags import (
    TagReconciler,
    insert_ignoring_conflicts,
    normalize_tags,
)


@pytest.fixture
def reconciler():
    return TagReconciler()


def user_id_for(db, email):
    return db.query(User).filter(User.email == email).one().id


GRACE = {
    "email": "grace@example.com",
    "name": "Grace",
    "password": "pass1234",
    "type_user": "mentor",
}


def linked_tags(db, user_id):
    rows = (
        db.query(Tag.tag)
        .join(UserTag, UserTag.tag_id == Tag.id)
        .filter(UserTag.user_id == user_id)
        .all()
    )
    return sorted(tag for (tag,) in rows)


def test_normalize_tags():
    """Test tags are trimmed, lower-cased and de-duplicated in order."""
    assert normalize_tags([" Go", "rust", "GO", "", "  "]) == ["go", "rust"]


def test_reconcile_is_idempotent(db, reconciler, mentor):
    """Test reconciling the same set twice leaves one link per tag."""
    user_id = user_id_for(db, "mentor@example.com")
    reconciler.reconcile(db, user_id, ["go", "rust"])
    reconciler.reconcile(db, user_id, ["go", "rust"])
    db.commit()

    assert db.query(UserTag).filter(UserTag.user_id == user_id).count() == 2
    assert db.query(Tag).count() == 2


def test_reconcile_converges_to_desired_set(db, reconciler, mentor):
    """Test tags missing from the desired set are unlinked."""
    user_id = user_id_for(db, "mentor@example.com")
    reconciler.reconcile(db, user_id, ["go", "rust"])
    reconciler.reconcile(db, user_id, ["go"])
    db.commit()

    assert linked_tags(db, user_id) == ["go"]
    # The vocabulary is shared and keeps the unlinked tag
    assert db.query(Tag).filter(Tag.tag == "rust").count() == 1


def test_reconcile_normalizes_case(db, reconciler, mentor):
    """Test mixed-case input lands in the lower-case vocabulary."""
    user_id = user_id_for(db, "mentor@example.com")
    reconciler.reconcile(db, user_id, ["Go", "GO", "Rust"])
    db.commit()

    assert linked_tags(db, user_id) == ["go", "rust"]


def test_reconcile_empty_clears_links(db, reconciler, mentor):
    """Test an explicitly empty tag list removes every link."""
    user_id = user_id_for(db, "mentor@example.com")
    reconciler.reconcile(db, user_id, ["go", "rust"])
    reconciler.reconcile(db, user_id, [])
    db.commit()

    assert linked_tags(db, user_id) == []


def test_reconcile_shares_vocabulary_between_users(db, reconciler, directory, mentor):
    """Test overlapping tags for different users reuse one vocabulary row."""
    directory.create_user(GRACE)
    first = user_id_for(db, "mentor@example.com")
    second = user_id_for(db, "grace@example.com")

    reconciler.reconcile(db, first, ["go", "rust"])
    reconciler.reconcile(db, second, ["rust", "cobol"])
    db.commit()

    assert db.query(Tag).count() == 3
    assert linked_tags(db, first) == ["go", "rust"]
    assert linked_tags(db, second) == ["cobol", "rust"]


def test_load_tags_for_batches_users(db, reconciler, directory, mentor):
    """Test tags for several users come back keyed by id, including users without tags."""
    directory.create_user(GRACE)
    first = user_id_for(db, "mentor@example.com")
    second = user_id_for(db, "grace@example.com")
    reconciler.reconcile(db, first, ["rust", "go"])
    db.commit()

    result = reconciler.load_tags_for(db, [first, second])
    assert result == {first: ["go", "rust"], second: []}
    assert reconciler.load_tags_for(db, []) == {}


def test_find_users_by_tags(db, reconciler, mentor):
    """Test mentors are found by any of their tags."""
    user_id = user_id_for(db, "mentor@example.com")
    reconciler.reconcile(db, user_id, ["go"])
    db.commit()

    assert reconciler.find_users_by_tags(db, ["GO", "haskell"]) == [user_id]
    assert reconciler.find_users_by_tags(db, ["haskell"]) == []


def test_insert_ignoring_conflicts_unsupported_dialect():
    """Test engines without an insert-if-absent form fail with DatabaseError."""
    session = MagicMock()
    session.get_bind.return_value.dialect.name = "mssql"

    with pytest.raises(DatabaseError) as exc_info:
        insert_ignoring_conflicts(session, Tag.__table__, [{"tag": "go"}])

    assert "mssql" in exc_info.value.details
    session.execute.assert_not_called()
