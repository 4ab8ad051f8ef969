"""Run scripted multi-client board scenarios and show the outcome.

Usage:
    uv run numbercall-simulate              # every scenario
    uv run numbercall-simulate race         # one scenario
    uv run numbercall-simulate race --legacy  # position-addressed deletes
"""

from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from numbercall.board import Category
from numbercall.simulation import SCENARIOS

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numbercall.simulation import ScenarioResult

console = Console()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="numbercall-simulate",
        description="Simulate several board clients against one server.",
    )
    parser.add_argument(
        "scenario",
        nargs="?",
        default="all",
        choices=["all", *SCENARIOS],
        help="Scenario to run (default: all)",
    )
    parser.add_argument(
        "--legacy",
        action="store_true",
        help="Address deletes by position only, as older clients did",
    )
    return parser


def _format_lists(lists: dict[Category, list[str]]) -> str:
    return "  ".join(f"{cat.value}={lists.get(cat, [])}" for cat in Category)


def render_result(result: ScenarioResult, con: Console = console) -> None:
    """Print one scenario's store, mirrors and speech as a table."""
    table = Table(title=f"Scenario: {result.name}", show_lines=False)
    table.add_column("Who", style="bold")
    table.add_column("Lists")
    table.add_column("Spoken")

    table.add_row("[cyan]server[/]", _format_lists(result.store), "")
    for name, mirror in result.mirrors.items():
        marker = "" if mirror == result.store else " [red](diverged)[/]"
        table.add_row(
            f"{name}{marker}",
            _format_lists(mirror),
            "; ".join(result.spoken.get(name, [])) or "[dim]-[/]",
        )
    con.print(table)
    for note in result.notes:
        con.print(f"  [yellow]•[/] {note}")
    status = "[green]converged[/]" if result.converged else "[red]diverged[/]"
    con.print(f"  Result: {status}\n")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for ``numbercall-simulate``."""
    args = _build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    names = list(SCENARIOS) if args.scenario == "all" else [args.scenario]
    for name in names:
        render_result(SCENARIOS[name](legacy=args.legacy))
    return 0


if __name__ == "__main__":
    sys.exit(main())
