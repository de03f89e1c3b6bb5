# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Report - Collect per-job results in job-list order and render them.

The run is OK only if every entry is SUCCESS. UNSTABLE counts as a failure.
"""

import json
import threading
from enum import Enum
from typing import Dict, List, Optional

import typer

from jobrelay.schemas import BuildOutcome, BuildResult


class RunOutcome(Enum):
    """Overall outcome of a run."""

    OK = "OK"
    FAILED = "FAILED"


class RunReport:
    """Ordered results, one reserved slot per job-list position.

    Each slot is written once. Workers may record concurrently.
    """

    def __init__(self, size: int):
        self._slots: List[Optional[BuildResult]] = [None] * size
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._slots)

    def record(self, result: BuildResult) -> None:
        """Store a result in its slot.

        Raises:
            IndexError: If the position is outside the report
            ValueError: If the slot already holds a result
        """
        if not 0 <= result.position < len(self._slots):
            raise IndexError(f"position {result.position} outside report of {len(self._slots)}")
        with self._lock:
            if self._slots[result.position] is not None:
                raise ValueError(f"result for position {result.position} already recorded")
            self._slots[result.position] = result

    @property
    def complete(self) -> bool:
        return all(slot is not None for slot in self._slots)

    @property
    def results(self) -> List[BuildResult]:
        """Recorded results in job-list order."""
        return [slot for slot in self._slots if slot is not None]

    @property
    def outcome(self) -> RunOutcome:
        if all(slot is not None and slot.outcome is BuildOutcome.SUCCESS for slot in self._slots):
            return RunOutcome.OK
        return RunOutcome.FAILED

    @property
    def exit_code(self) -> int:
        return 0 if self.outcome is RunOutcome.OK else 1

    def counts(self) -> Dict[str, int]:
        """Number of results per outcome."""
        counts: Dict[str, int] = {}
        for result in self.results:
            counts[result.outcome.value] = counts.get(result.outcome.value, 0) + 1
        return counts


# =============================================================================
# Output Rendering
# =============================================================================

def format_result(result: BuildResult) -> str:
    """One progress line: `instance/job -> OUTCOME #N (detail)`."""
    line = f"{result.instance_name}/{result.job_name} -> {result.outcome.value}"
    if result.build_number is not None:
        line += f" #{result.build_number}"
    if result.detail:
        line += f" ({result.detail})"
    return line


def result_to_dict(result: BuildResult) -> Dict:
    return {
        "position": result.position,
        "instance": result.instance_name,
        "job": result.job_name,
        "outcome": result.outcome.value,
        "build_number": result.build_number,
        "build_url": result.build_url,
        "detail": result.detail,
    }


def render_report(report: RunReport, format_type: str = "table") -> None:
    """Render a RunReport to stdout."""
    rows = [result_to_dict(r) for r in report.results]
    if format_type == "json":
        for row in rows:
            typer.echo(json.dumps(row))
        typer.echo(json.dumps({"overall": report.outcome.value}))
        return

    _render_table(rows)
    typer.echo(f"Overall: {report.outcome.value}")


def _render_table(rows: List[Dict]) -> None:
    """Render rows as a simple table."""
    if not rows:
        typer.echo("(no jobs)")
        return
    keys = ["instance", "job", "outcome", "build_number", "build_url"]
    cells = [{k: "" if row[k] is None else str(row[k]) for k in keys} for row in rows]
    widths = {k: max(len(k), max(len(c[k]) for c in cells)) for k in keys}
    header = " | ".join(k.ljust(widths[k]) for k in keys)
    typer.echo(header)
    typer.echo("-" * len(header))
    for c in cells:
        typer.echo(" | ".join(c[k].ljust(widths[k]) for k in keys).rstrip())
