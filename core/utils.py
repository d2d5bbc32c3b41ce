from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

import numpy as np
from dateutil import parser as date_parser


def parse_task_date(value) -> Optional[date]:
    """
    Parse a task date (ISO or any dateutil-readable string, datetime, date).

    Empty, None and unreadable values give None, i.e. "no date".
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError):
        return None


def year_from_task(task_start: Optional[date], all_starts: Sequence[Optional[date]]) -> int:
    """
    1-indexed project year in which a task starts.

    Year 1 covers days 0..364 after the earliest task start, year 2 days 365..729, etc.
    Returns 1 when there is no usable timeline or the task has no start date.
    """
    known = [d for d in all_starts if d is not None]
    if task_start is None or not known:
        return 1
    project_start = min(known)
    if task_start < project_start:
        return 1
    return (task_start - project_start).days // 365 + 1


def zeros(n: int) -> np.ndarray:
    return np.zeros(max(int(n), 0), dtype=float)

