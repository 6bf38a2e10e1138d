"""Command-line client for the Digest API.

Usage:
    digest "What are agents saying about CRMs?" --timeframe week
    digest --history
    digest --forget "What are agents saying about CRMs?"
"""

import argparse
import logging
import sys
from pathlib import Path

from models.digest import TextDeltaEvent, Timeframe, ToolInputEvent
from models.session import SessionStatus, ToolInvocation
from services.digest_client import DEFAULT_BASE_URL, DigestClient
from services.digest_session import (
    EXAMPLE_QUERIES,
    DigestSession,
    tool_activity_label,
)
from utils.history_store import DEFAULT_HISTORY_PATH, JsonFileHistoryStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="digest",
        description="Scan real estate communities for trends, pain points, "
        "and product opportunities.",
    )
    parser.add_argument("query", nargs="?", help="Research query")
    parser.add_argument(
        "--timeframe",
        choices=[t.value for t in Timeframe],
        default=Timeframe.MONTH.value,
        help="How far back to look (default: month)",
    )
    parser.add_argument("--url", default=DEFAULT_BASE_URL, help="API base URL")
    parser.add_argument(
        "--history-file",
        type=Path,
        default=DEFAULT_HISTORY_PATH,
        help="Where recent searches are stored",
    )
    parser.add_argument(
        "--history", action="store_true", help="List recent searches and examples"
    )
    parser.add_argument("--forget", metavar="QUERY", help="Remove a recent search")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def _print_event(out, err):
    def on_event(message, event):
        if isinstance(event, TextDeltaEvent):
            out.write(event.delta)
            out.flush()
        elif isinstance(event, ToolInputEvent):
            invocation = ToolInvocation(
                tool_call_id=event.tool_call_id,
                tool_name=event.tool_name,
                args=event.input,
            )
            err.write(f"● {tool_activity_label(invocation)}\n")
            err.flush()

    return on_event


def main(argv: list[str] | None = None, transport=None, out=None, err=None) -> int:
    """Run the CLI. Returns the process exit code."""
    out = out or sys.stdout
    err = err or sys.stderr
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    session = DigestSession(
        transport=transport or DigestClient(base_url=args.url),
        history_store=JsonFileHistoryStore(args.history_file),
        on_event=_print_event(out, err),
    )

    if args.forget:
        session.remove_history_item(args.forget)
        return 0

    if args.history:
        out.write("Recent searches:\n")
        for label, _ in session.history_display:
            out.write(f"  {label}\n")
        out.write("Examples:\n")
        for example in EXAMPLE_QUERIES:
            out.write(f"  {example}\n")
        return 0

    session.set_timeframe(args.timeframe)
    session.set_input(args.query or "")
    if not session.submit_form():
        err.write("Please enter a research query.\n")
        return 2

    out.write("\n")
    if session.status == SessionStatus.ERROR:
        err.write(f"Error: {session.error}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
