"""Single-slot holder for the latest successful run report."""

from __future__ import annotations

from typing import Optional

from .models import RunReport

__all__ = ["OverviewCache"]


class OverviewCache:
    r"""
    Holds the most recent :class:`~mcforecast.models.RunReport`.

    Reads never block. :meth:`put` replaces the whole report with one reference
    assignment, so a reader sees either the previous report or the new one, never a
    mix. Reports are frozen dataclasses and are not mutated after being stored.
    """

    def __init__(self) -> None:
        self._report: Optional[RunReport] = None

    def get(self) -> Optional[RunReport]:
        return self._report

    def put(self, report: RunReport) -> None:
        self._report = report

    @property
    def empty(self) -> bool:
        return self._report is None
