from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from inteldedup.app import run_command
from inteldedup.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from inteldedup.commands import CommandContext

log = logging.getLogger(__name__)

TOKEN_ENV_VAR = "INTELDEDUP_TOKEN"


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Find and merge duplicate OpenCTI intrusion sets")
    parser.add_argument(
        "--token",
        type=str,
        default=None,
        help=f"API token (defaults to ${TOKEN_ENV_VAR})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("scan", help="Scan OpenCTI for duplicate intrusion sets")

    for name, verb in (("approve", "Approve"), ("reject", "Reject")):
        review = subparsers.add_parser(name, help=f"{verb} a duplicate candidate")
        review.add_argument("candidate_id", type=str, help="Candidate id")
        review.add_argument(
            "--canonical-entity-id",
            type=str,
            help="Entity that should survive a later merge",
        )

    merge = subparsers.add_parser("merge", help="Merge a candidate pair in OpenCTI")
    merge.add_argument("candidate_id", type=str, help="Candidate id")
    merge.add_argument(
        "--keep",
        dest="keep_entity_id",
        type=str,
        required=True,
        help="Entity id to keep; the other side of the pair is merged into it",
    )

    subparsers.add_parser("clear-stuck", help="Mark every running scan as failed")

    clear_all = subparsers.add_parser("clear-all", help="Delete all candidates, history and scans")
    clear_all.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the irreversible deletion",
    )

    subparsers.add_parser(
        "reconcile",
        help="Repair half-applied merges and release stale merge claims",
    )

    candidates = subparsers.add_parser("candidates", help="List duplicate candidates")
    candidates.add_argument(
        "--status",
        type=str,
        default="pending",
        help="pending, approved, rejected, merged or all (default: %(default)s)",
    )
    candidates.add_argument("--limit", type=int, default=50, help="Maximum rows to list")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser.parse_args(list(argv))


def _build_body(args: argparse.Namespace) -> dict[str, object]:
    command: str = args.command
    if command in {"approve", "reject"}:
        body: dict[str, object] = {"action": command, "candidateId": args.candidate_id}
        if args.canonical_entity_id:
            body["canonicalEntityId"] = args.canonical_entity_id
        return body
    if command == "merge":
        return {
            "action": "merge",
            "candidateId": args.candidate_id,
            "keepEntityId": args.keep_entity_id,
        }
    if command == "clear-all":
        if not args.yes:
            raise ValueError("clear-all deletes every candidate and history row; pass --yes")
        return {"action": "clear-all"}
    if command == "candidates":
        if args.limit is not None and args.limit <= 0:
            raise ValueError("--limit must be positive")
        return {"action": "list-candidates", "status": args.status, "limit": args.limit}
    return {"action": command}


def _serve(host: str, port: int) -> None:
    import uvicorn  # noqa: PLC0415

    from inteldedup.api import create_app  # noqa: PLC0415

    uvicorn.run(create_app(), host=host, port=port)


def main(argv: Sequence[str] | None = None, *, context: CommandContext | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        body = None if parsed_args.command == "serve" else _build_body(parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    if body is None:
        _serve(parsed_args.host, parsed_args.port)
        return

    token = parsed_args.token or os.getenv(TOKEN_ENV_VAR)
    authorization = f"Bearer {token}" if token else None
    try:
        response = run_command(body, authorization=authorization, context=context)
    except Exception:
        log.exception("Fatal error while running %s", parsed_args.command)
        sys.exit(1)

    print(json.dumps(response.payload, indent=2))  # noqa: T201
    if not response.ok:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def entrypoint() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    entrypoint()
