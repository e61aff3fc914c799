"""Unit-of-work tests."""

import logging
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool

from mentor_directory.errors import PoolExhausted
from mentor_directory.models import Tag
from mentor_directory.services.unit_of_work import UnitOfWork


def test_commits_on_success(db, session_factory):
    """Test statements are committed when the block returns normally."""
    uow = UnitOfWork(session_factory)
    with uow.transaction() as session:
        session.execute(insert(Tag.__table__).values(tag="go"))

    assert db.query(Tag).filter(Tag.tag == "go").count() == 1


def test_run_passes_session_and_returns_result(db, session_factory):
    """Test run() hands the scoped session to the callable."""
    uow = UnitOfWork(session_factory)

    def add_tag(session, name):
        session.execute(insert(Tag.__table__).values(tag=name))
        return name.upper()

    assert uow.run(add_tag, "rust") == "RUST"
    assert db.query(Tag).filter(Tag.tag == "rust").count() == 1


def test_rolls_back_on_failure(db, session_factory):
    """Test nothing from a failed block is visible afterwards."""
    uow = UnitOfWork(session_factory)
    with pytest.raises(RuntimeError):
        with uow.transaction() as session:
            session.execute(insert(Tag.__table__).values(tag="go"))
            raise RuntimeError("boom")

    assert db.query(Tag).count() == 0


def test_closes_session_exactly_once_on_every_path():
    """Test the session is released once on success and on failure."""
    session = MagicMock()
    uow = UnitOfWork(lambda: session)

    with uow.transaction():
        pass
    assert session.close.call_count == 1
    session.commit.assert_called_once()

    session.reset_mock()
    with pytest.raises(ValueError):
        with uow.transaction():
            raise ValueError("business rule")
    assert session.close.call_count == 1
    session.rollback.assert_called_once()
    session.commit.assert_not_called()


def test_rollback_failure_does_not_mask_original_error(caplog):
    """Test a failing rollback is logged while the triggering error propagates."""
    session = MagicMock()
    session.rollback.side_effect = OperationalError("ROLLBACK", {}, Exception("gone"))
    uow = UnitOfWork(lambda: session)

    with caplog.at_level(logging.ERROR, logger="mentor_directory.services.unit_of_work"):
        with pytest.raises(KeyError):
            with uow.transaction():
                raise KeyError("original")

    assert "Rollback failed" in caplog.text
    session.close.assert_called_once()


def test_pool_exhaustion_is_reported(tmp_path):
    """Test waiting on an exhausted pool raises PoolExhausted instead of hanging."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'pool.db'}",
        poolclass=QueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=0.1,
    )
    uow = UnitOfWork(sessionmaker(bind=engine))

    held = engine.connect()
    try:
        with pytest.raises(PoolExhausted) as exc_info:
            with uow.transaction():
                pass
        assert exc_info.value.retryable
    finally:
        held.close()
        engine.dispose()
