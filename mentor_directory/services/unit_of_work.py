"""Transactional scope bound to one pooled connection."""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from mentor_directory.errors import PoolExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitOfWork:
    """Runs a block of statements atomically on a fresh session.

    Every scope starts from a new session; nesting is not supported. The
    session is closed (and its connection returned to the pool) exactly
    once on every exit path.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            try:
                # Check out the pooled connection now so exhaustion surfaces here
                session.connection()
            except PoolTimeoutError as e:
                logger.warning("Connection pool exhausted")
                raise PoolExhausted() from e

            try:
                yield session
                session.commit()
            except BaseException:
                self._rollback(session)
                raise
        finally:
            session.close()

    def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call ``fn(session, *args, **kwargs)`` inside a transaction."""
        with self.transaction() as session:
            return fn(session, *args, **kwargs)

    @staticmethod
    def _rollback(session: Session) -> None:
        try:
            session.rollback()
        except SQLAlchemyError:
            # Keep the original failure; the rollback error is only logged
            logger.exception("Rollback failed")
