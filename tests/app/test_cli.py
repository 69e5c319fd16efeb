from __future__ import annotations

import json
from typing import Any

import pytest

from inteldedup.commands import CommandContext  # noqa: TC001
from inteldedup.domain.model import DuplicateCandidate  # noqa: TC001
from inteldedup.ui.cli import main
from tests.helpers.intel import ADMIN_TOKEN, ANALYST_TOKEN, FakeMerger


def _output(capsys: pytest.CaptureFixture[str]) -> dict[str, Any]:
    return json.loads(capsys.readouterr().out)


def test_scan_prints_json(
    command_context: CommandContext, capsys: pytest.CaptureFixture[str]
) -> None:
    main(["--token", ADMIN_TOKEN, "scan"], context=command_context)

    payload = _output(capsys)
    assert payload["success"] is True
    assert payload["newCandidates"] == 1


def test_token_from_environment(
    command_context: CommandContext,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("INTELDEDUP_TOKEN", ADMIN_TOKEN)

    main(["clear-stuck"], context=command_context)

    assert _output(capsys) == {"success": True, "cleared": 0}


def test_failed_command_exits_non_zero(
    command_context: CommandContext,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("INTELDEDUP_TOKEN", raising=False)

    with pytest.raises(SystemExit) as exc:
        main(["--token", ANALYST_TOKEN, "scan"], context=command_context)

    assert exc.value.code == 1
    assert _output(capsys) == {"error": "Admin access required"}


def test_merge_passes_keep_entity(
    command_context: CommandContext,
    stored_candidate: DuplicateCandidate,
    merger: FakeMerger,
    capsys: pytest.CaptureFixture[str],
) -> None:
    main(
        [
            "--token",
            ADMIN_TOKEN,
            "merge",
            str(stored_candidate.id),
            "--keep",
            "intrusion-set--b",
        ],
        context=command_context,
    )

    assert merger.calls == [("intrusion-set--b", ("intrusion-set--a",))]
    assert _output(capsys)["keptEntity"] == {"id": "intrusion-set--b", "name": "Cozy Bear"}


def test_approve_with_canonical_entity(
    command_context: CommandContext,
    stored_candidate: DuplicateCandidate,
    capsys: pytest.CaptureFixture[str],
) -> None:
    main(
        [
            "--token",
            ADMIN_TOKEN,
            "approve",
            str(stored_candidate.id),
            "--canonical-entity-id",
            "intrusion-set--a",
        ],
        context=command_context,
    )

    assert _output(capsys) == {"success": True, "status": "approved"}


def test_candidates_lists_all_statuses(
    command_context: CommandContext,
    stored_candidate: DuplicateCandidate,
    capsys: pytest.CaptureFixture[str],
) -> None:
    main(["--token", ADMIN_TOKEN, "candidates", "--status", "all"], context=command_context)

    candidates = _output(capsys)["candidates"]
    assert [row["id"] for row in candidates] == [str(stored_candidate.id)]


def test_clear_all_requires_confirmation(
    command_context: CommandContext,
    stored_candidate: DuplicateCandidate,
) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--token", ADMIN_TOKEN, "clear-all"], context=command_context)

    assert exc.value.code == 2
    with command_context.unit_of_work_factory() as uow:
        assert uow.repositories.candidates.get(stored_candidate.id) is not None


def test_clear_all_with_confirmation(
    command_context: CommandContext,
    stored_candidate: DuplicateCandidate,
    capsys: pytest.CaptureFixture[str],
) -> None:
    main(["--token", ADMIN_TOKEN, "clear-all", "--yes"], context=command_context)

    assert _output(capsys)["message"] == "All dedup data cleared"
    with command_context.unit_of_work_factory() as uow:
        assert uow.repositories.candidates.get(stored_candidate.id) is None


def test_non_positive_limit_is_rejected(command_context: CommandContext) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--token", ADMIN_TOKEN, "candidates", "--limit", "0"], context=command_context)

    assert exc.value.code == 2
