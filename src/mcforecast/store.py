r"""
Append-only run history.

Layout under the store root::

    core.csv                          one summary row per run
    data/source_simulation_<k>.csv    raw terminal prices of one run

The ledger is only ever appended to; its header is written once, into a missing or
empty file, and a failed append is truncated away. Raw-output files are written
chunk by chunk to ``<name>.csv.part`` and renamed into place when complete, so a
crashed write never leaves a well-formed but truncated file behind.

:meth:`RunLogStore.recover` rebuilds the run counters (last run id, cumulative
simulated count, next file index) from disk. It is meant to be called once at
startup; the engine keeps the counters in memory afterwards.
"""

from __future__ import annotations

import logging
import os
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence, Union

import numpy as np
import pandas as pd

from .aggregator import format_change
from .errors import PersistenceError
from .models import LEDGER_COLUMNS, RunSummary, RunUnavailable

logger = logging.getLogger(__name__)

__all__ = ["RunLogStore", "LogState", "RAW_COLUMNS"]

RAW_COLUMNS = ("simulation_id", "price", "percentage_change")


@dataclass(frozen=True)
class LogState:
    r"""
    Counters recovered from an existing run log.

    Attributes
    ----------
    last_run_id : int
        Id of the last ledger row, ``0`` for an empty ledger.
    total_simulated : int
        Cumulative simulated count of the last ledger row.
    next_file_index : int
        One past the highest raw-output suffix on disk, ``1`` if there is none.
    """

    last_run_id: int = 0
    total_simulated: int = 0
    next_file_index: int = 1


class RunLogStore:
    r"""
    Ledger of run summaries plus one raw-output file per run.

    Parameters
    ----------
    root : str or Path
        Directory holding ``core.csv`` and the ``data/`` subdirectory. Created if
        missing.
    ledger_name : str, default ``"core.csv"``
    raw_prefix : str, default ``"source_simulation"``

    Raises
    ------
    PersistenceError
        If the directories cannot be created.

    Notes
    -----
    Writes are serialized by an internal lock. The engine additionally guarantees
    that at most one run writes at a time.
    """

    def __init__(
        self,
        root: Union[str, Path],
        ledger_name: str = "core.csv",
        raw_prefix: str = "source_simulation",
    ):
        self.root = Path(root)
        self.ledger_path = self.root / ledger_name
        self.data_dir = self.root / "data"
        self.raw_prefix = raw_prefix
        self._raw_pattern = re.compile(rf"^{re.escape(raw_prefix)}_(\d+)\.csv$")
        self._lock = threading.Lock()
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot create data directory {self.data_dir}: {exc}") from exc

    def recover(self) -> LogState:
        """Scan the ledger and the raw-output directory for the current counters."""
        runs = self.read_all()
        indices = [
            int(m.group(1))
            for m in (self._raw_pattern.match(p.name) for p in self.data_dir.iterdir())
            if m is not None
        ]
        state = LogState(
            last_run_id=runs[-1].run_id if runs else 0,
            total_simulated=runs[-1].total_simulated if runs else 0,
            next_file_index=max(indices) + 1 if indices else 1,
        )
        logger.debug("Recovered run log state: %s", state)
        return state

    def raw_file_name(self, index: int) -> str:
        return f"{self.raw_prefix}_{index}.csv"

    # -------------------------------------------------------------------- writes
    def write_raw_output(
        self,
        index: int,
        chunks: Iterable[np.ndarray],
        reference: float,
    ) -> str:
        r"""
        Write one run's terminal prices, one append per chunk.

        Parameters
        ----------
        index : int
            Raw-output file index.
        chunks : iterable of ndarray
            Terminal prices in run order. Rows are numbered from 1 across chunks.
        reference : float
            Reference price used for the percentage-change column.

        Returns
        -------
        str
            Name of the completed file.

        Raises
        ------
        PersistenceError
            If the target already exists or any write fails. The partial file is removed.
        """
        name = self.raw_file_name(index)
        final = self.data_dir / name
        part = final.with_name(name + ".part")
        position = 0
        with self._lock:
            if final.exists():
                raise PersistenceError(f"Raw output {name} already exists")
            try:
                pd.DataFrame(columns=list(RAW_COLUMNS)).to_csv(part, index=False)
                for chunk in chunks:
                    arr = np.asarray(chunk, dtype=float)
                    frame = pd.DataFrame(
                        {
                            "simulation_id": np.arange(position + 1, position + arr.size + 1),
                            "price": np.round(arr, 2),
                            "percentage_change": [format_change(p, reference) for p in arr],
                        }
                    )
                    frame.to_csv(part, mode="a", header=False, index=False)
                    position += arr.size
                os.replace(part, final)
            except OSError as exc:
                part.unlink(missing_ok=True)
                raise PersistenceError(f"Failed to write raw output {name}: {exc}") from exc
        logger.debug("Wrote %d rows to %s", position, name)
        return name

    def append_run(self, summary: RunSummary) -> None:
        r"""
        Append one summary row to the ledger.

        The header is written when the ledger is missing or empty. A failed write is
        truncated back to the previous file size, so a torn row never reaches disk.

        Raises
        ------
        PersistenceError
            If the ledger cannot be written. Previously committed rows are untouched.
        """
        frame = pd.DataFrame([summary.to_row()], columns=list(LEDGER_COLUMNS))
        with self._lock:
            size = self.ledger_path.stat().st_size if self.ledger_path.exists() else 0
            try:
                frame.to_csv(self.ledger_path, mode="a", header=size == 0, index=False)
            except OSError as exc:
                self._truncate_ledger(size)
                raise PersistenceError(f"Failed to append run {summary.run_id}: {exc}") from exc

    def _truncate_ledger(self, size: int) -> None:
        if not self.ledger_path.is_file():
            return
        try:
            os.truncate(self.ledger_path, size)
        except OSError as exc:
            logger.error("Could not roll back partial ledger write in %s: %s", self.ledger_path, exc)

    # --------------------------------------------------------------------- reads
    def read_all(self) -> list[RunSummary]:
        r"""
        Every ledger row, in insertion order.

        Raises
        ------
        PersistenceError
            If the ledger exists but cannot be parsed.
        """
        if not self.ledger_path.exists() or self.ledger_path.stat().st_size == 0:
            return []
        try:
            frame = pd.read_csv(self.ledger_path, dtype={"data_source": str})
            return [RunSummary.from_row(row) for row in frame.to_dict(orient="records")]
        except (OSError, ValueError, KeyError) as exc:
            raise PersistenceError(f"Cannot read run ledger {self.ledger_path}: {exc}") from exc

    def read_by_ids(self, ids: Sequence[int]) -> list[Union[RunSummary, RunUnavailable]]:
        r"""
        Look up runs by 1-based id.

        Ids outside ``1..len(ledger)`` map to :class:`~mcforecast.models.RunUnavailable`
        instead of raising.
        """
        runs = self.read_all()
        out: list[Union[RunSummary, RunUnavailable]] = []
        for run_id in ids:
            if 0 < run_id <= len(runs):
                out.append(runs[run_id - 1])
            else:
                out.append(RunUnavailable(run_id))
        return out

    def read_raw_output(self, name: str) -> pd.DataFrame:
        """Load a raw-output file by name."""
        return pd.read_csv(self.data_dir / name, dtype={"percentage_change": str})

    def data_size(self) -> int:
        r"""
        Total bytes of completed raw-output files.

        Files removed while the directory is being scanned are skipped.

        Raises
        ------
        PersistenceError
            If the raw-output directory cannot be listed.
        """
        total = 0
        try:
            names = [p for p in self.data_dir.iterdir() if self._raw_pattern.match(p.name)]
        except OSError as exc:
            raise PersistenceError(f"Cannot list {self.data_dir}: {exc}") from exc
        for path in names:
            try:
                total += path.stat().st_size
            except FileNotFoundError:
                continue
        return total
