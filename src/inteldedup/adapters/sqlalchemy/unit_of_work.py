"""Session lifecycle for the candidate store.

``startup`` binds one engine for the process (migrating it to head); every
command then opens short-lived ``SqlAlchemyDedupUnitOfWork`` scopes on it.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from inteldedup.adapters.sqlalchemy.mappings import start_mappers
from inteldedup.adapters.sqlalchemy.migrations import upgrade_head
from inteldedup.adapters.sqlalchemy.repositories import (
    SqlAlchemyCandidateRepository,
    SqlAlchemyMergeHistoryRepository,
    SqlAlchemyScanRunRepository,
)
from inteldedup.config.storage import get_database_config
from inteldedup.domain.errors import PersistenceError
from inteldedup.domain.ports.unit_of_work import DedupRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """The store was used before ``startup`` or started twice."""


class _Binding:
    """The process-wide engine and the session factory bound to it."""

    def __init__(self) -> None:
        self.engine: Engine | None = None
        self.sessions: sessionmaker[Session] | None = None

    def bind(self, engine: Engine | None) -> None:
        self.engine = engine
        # loaded candidates are returned to callers after commit
        self.sessions = sessionmaker(bind=engine, expire_on_commit=False) if engine else None

    def open_session(self) -> Session:
        if self.sessions is None:
            raise StartupError(
                "Candidate store not started; call "
                "inteldedup.adapters.sqlalchemy.unit_of_work.startup() first"
            )
        return self.sessions()


_BINDING = _Binding()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the store to ``engine`` (or a new engine for the URI) and migrate it."""

    if _BINDING.engine is not None and not force:
        raise StartupError("Candidate store already started; pass force=True to rebind")

    bound = engine or create_engine(database_uri or get_database_config().uri, future=True)
    start_mappers()
    upgrade_head(engine=bound)
    log.info("Candidate store at %s", bound.url.render_as_string(hide_password=True))
    _BINDING.bind(bound)


def configured_engine() -> Engine | None:
    return _BINDING.engine


def is_started() -> bool:
    return _BINDING.engine is not None


def shutdown() -> None:
    """Dispose the bound engine; the next unit of work needs a new ``startup``."""

    if _BINDING.engine is not None:
        _BINDING.engine.dispose()
    _BINDING.bind(None)


class SqlAlchemyDedupUnitOfWork:
    """Transaction scope over candidates, merge history and scan runs.

    Leaving the block with an exception rolls back. ``commit`` reports driver
    and constraint failures as ``PersistenceError``.
    """

    def __init__(self) -> None:
        self._session = _BINDING.open_session()
        self._repositories = DedupRepositories(
            candidates=SqlAlchemyCandidateRepository(self._session),
            history=SqlAlchemyMergeHistoryRepository(self._session),
            scan_runs=SqlAlchemyScanRunRepository(self._session),
        )

    @property
    def session(self) -> Session:
        return self._session

    @property
    def repositories(self) -> DedupRepositories:
        return self._repositories

    def __enter__(self) -> SqlAlchemyDedupUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self._session.rollback()
        self._session.close()
        return False

    def commit(self) -> None:
        try:
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError(f"Database write failed: {exc}") from exc

    def rollback(self) -> None:
        self._session.rollback()


if TYPE_CHECKING:
    from inteldedup.domain.ports.unit_of_work import DedupUnitOfWork

    _uow_check: DedupUnitOfWork = SqlAlchemyDedupUnitOfWork()
