# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Job list reading.

The job list is plain text, one job per line:

    job1
    job2

    [uat]
    job3

A `[name]` header starts a group for that instance. A blank line ends the
group; jobs after it without a new header go to the default instance.
"""

from pathlib import Path
from typing import List, Optional

from jobrelay.schemas import JobEntry


class JobListError(Exception):
    """Raised when the job list cannot be read or parsed."""
    pass


def parse_job_list(text: str) -> List[JobEntry]:
    """Parse job list text into ordered entries."""
    entries: List[JobEntry] = []
    instance: Optional[str] = None

    for lineno, line in enumerate(text.splitlines(), 1):
        stripped = line.strip()
        if not stripped:
            instance = None
            continue
        if stripped.startswith("[") and stripped.endswith("]"):
            name = stripped[1:-1].strip()
            if not name:
                raise JobListError(f"line {lineno}: empty instance header")
            instance = name
            continue
        entries.append(JobEntry(instance=instance, job=stripped))

    return entries


def read_job_list(path: Path) -> List[JobEntry]:
    """Read and parse a job list file."""
    path = Path(path).expanduser()
    if not path.exists():
        raise JobListError(f"Job list not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise JobListError(f"Failed to read {path}: {e}")
    return parse_job_list(text)
