"""Application wiring: adapters plugged into the command surface."""

from __future__ import annotations

from functools import cache
from logging import getLogger
from typing import TYPE_CHECKING

from inteldedup.adapters.auth import StaticTokenAuthenticator
from inteldedup.adapters.opencti import OpenCtiClient
from inteldedup.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyDedupUnitOfWork,
    is_started,
    startup,
)
from inteldedup.commands import CommandContext, CommandResponse, handle_command
from inteldedup.config import get_opencti_config, get_scan_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from inteldedup.domain.ports import Authenticator

log = getLogger(__name__)


def build_command_context(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    authenticator: Authenticator | None = None,
) -> CommandContext:
    """Start the database adapter (once) and assemble the production collaborators."""

    if not is_started():
        startup(engine=engine, database_uri=database_uri)

    @cache
    def opencti_client() -> OpenCtiClient:
        config = get_opencti_config()
        log.info("OpenCTI URL: %s", config.url)
        return OpenCtiClient(config=config)

    return CommandContext(
        authenticator=authenticator or StaticTokenAuthenticator.from_config(),
        unit_of_work_factory=SqlAlchemyDedupUnitOfWork,
        source_factory=opencti_client,
        merger_factory=opencti_client,
        scan_config=get_scan_config(),
    )


def run_command(
    body: object,
    *,
    authorization: str | None,
    context: CommandContext | None = None,
) -> CommandResponse:
    return handle_command(
        body,
        authorization=authorization,
        context=context or build_command_context(),
    )
