r"""

mcforecast.engine
=================

Simulation orchestrator.

:class:`ForecastEngine` turns one :class:`~mcforecast.models.SimulationRequest`
into one persisted run:

1. validate the request (on construction of the request object);
2. ask the price source for the reference price;
3. split the simulation count into fixed-size batches;
4. run the batches on an execution backend and concatenate them in batch order,
   whatever order they finished in;
5. reduce the terminal prices with the stats engine;
6. write the raw output, then append the ledger row under the next run id;
7. swap the new report into the overview cache.

At most one run is in flight per engine. Callers that ask for a run while one is
already executing wait for it and receive the same report (or the same error).
Overview reads never wait: while a run is processing they are served the previous
report.

Failures
--------
Any error after validation sets the status to ``FAILED``, leaves the ledger and the
cache exactly as they were, and is re-raised to the caller as one of
:class:`~mcforecast.errors.SourceUnavailableError`,
:class:`~mcforecast.errors.WorkerFailure` or
:class:`~mcforecast.errors.PersistenceError`.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import Future
from dataclasses import replace
from typing import Optional, Sequence, Union

import numpy as np

from .aggregator import aggregate, build_overview
from .backends import ExecutionBackend, SamplerParams, create_backend, make_blocks
from .cache import OverviewCache
from .config import EngineConfig
from .errors import ForecastError, SourceUnavailableError, WorkerFailure
from .models import RunDetails, RunReport, RunStatus, RunSummary, RunUnavailable, SimulationRequest
from .price_source import PriceSource
from .scheduler import AutoRunner
from .stats_engine import DEFAULT_ENGINE, StatsEngine
from .store import RunLogStore
from .utils import format_data_size, format_processing_time, format_uptime

logger = logging.getLogger(__name__)  # pragma: no cover
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

__all__ = ["ForecastEngine"]


class ForecastEngine:
    r"""
    Owns the run lifecycle, the run counters and the overview cache.

    Parameters
    ----------
    config : EngineConfig
        Default request, batch size, backend and data directory.
    price_source : PriceSource
        Supplies the reference price for each run.
    store : RunLogStore, optional
        Run log. Defaults to a store rooted at ``config.data_dir``.
    backend : ExecutionBackend, optional
        Fixed execution backend. By default one is created per run from
        ``config.backend`` and the request's worker count.
    stats_engine : StatsEngine, optional
        Defaults to :data:`~mcforecast.stats_engine.DEFAULT_ENGINE`.

    Notes
    -----
    Counters are recovered from the store once, here, and kept in memory. Run ids
    are assigned only after the raw output of a run has been written, so a failed
    run never consumes an id. A file index consumed by a failed write is not reused.

    Examples
    --------
    >>> from mcforecast import EngineConfig, ForecastEngine, StaticPriceSource
    >>> cfg = EngineConfig(volatility_percentage=20, simulation_days=365,
    ...                    total_simulations=10_000, data_dir="private")
    >>> engine = ForecastEngine(cfg, StaticPriceSource(50_000))  # doctest: +SKIP
    >>> report = engine.run_simulation()  # doctest: +SKIP
    >>> report.overview.target.price  # doctest: +SKIP
    """

    def __init__(
        self,
        config: EngineConfig,
        price_source: PriceSource,
        store: Optional[RunLogStore] = None,
        backend: Optional[ExecutionBackend] = None,
        stats_engine: Optional[StatsEngine] = None,
    ):
        self.config = config
        self.price_source = price_source
        self.store = store if store is not None else RunLogStore(config.data_dir)
        self.backend = backend
        self.stats_engine = stats_engine or DEFAULT_ENGINE
        self.cache = OverviewCache()
        self.started_at = time.time()
        self.seed_seq = np.random.SeedSequence(config.seed)

        state = self.store.recover()
        self._last_run_id = state.last_run_id
        self._total_simulated = state.total_simulated
        self._next_file_index = state.next_file_index

        self._status = RunStatus.OK
        self._flight_lock = threading.Lock()
        self._inflight: Optional[Future] = None
        self._runner: Optional[AutoRunner] = None

    # ---------------------------------------------------------------- properties
    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def run_count(self) -> int:
        return self._last_run_id

    @property
    def total_simulated(self) -> int:
        return self._total_simulated

    @property
    def uptime(self) -> float:
        return time.time() - self.started_at

    # -------------------------------------------------------------- outward API
    def run_simulation(self, request: Optional[SimulationRequest] = None) -> RunReport:
        r"""
        Run one simulation, persist it and refresh the overview.

        Parameters
        ----------
        request : SimulationRequest, optional
            Defaults to :meth:`EngineConfig.to_request`.

        Returns
        -------
        RunReport
            Overview of the new run plus its details.

        Raises
        ------
        SourceUnavailableError, WorkerFailure, PersistenceError
            The run was aborted; nothing was persisted and the cache is unchanged.

        Notes
        -----
        If another run is already in flight, this call waits for it and returns its
        outcome instead of starting a second run.
        """
        req = request if request is not None else self.config.to_request()

        with self._flight_lock:
            flight = self._inflight
            leader = flight is None
            if leader:
                flight = self._inflight = Future()
                self._status = RunStatus.PROCESSING
        if not leader:
            logger.debug("Run already in flight; waiting for its outcome")
            return flight.result()

        try:
            report = self._execute(req)
        except BaseException as exc:
            with self._flight_lock:
                self._status = RunStatus.FAILED
                self._inflight = None
            logger.error("Simulation run failed: %s", exc)
            flight.set_exception(exc)
            raise
        with self._flight_lock:
            self._status = RunStatus.OK
            self._inflight = None
        flight.set_result(report)
        return report

    def refresh(self) -> Optional[RunReport]:
        """:meth:`run_simulation` with the configured request; failures are logged and return None."""
        try:
            return self.run_simulation()
        except ForecastError:
            return None

    def get_overview(self) -> RunReport:
        r"""
        Latest report with the current status and uptime.

        If no run has completed yet, a first run is executed synchronously. While a
        run is in flight the previous report is returned without waiting.
        """
        report = self.cache.get()
        if report is None:
            report = self.run_simulation()
        details = replace(report.details, uptime=format_uptime(self.uptime))
        return replace(report, status=self._status, details=details)

    def list_runs(self) -> list[RunSummary]:
        """All persisted run summaries in run-id order."""
        return self.store.read_all()

    def get_runs_by_ids(self, ids: Sequence[int]) -> list[Union[RunSummary, RunUnavailable]]:
        """Summaries for ``ids``; unknown ids map to :class:`RunUnavailable`."""
        return self.store.read_by_ids(ids)

    def start_auto_runs(self, interval: Optional[float] = None) -> AutoRunner:
        """Start (or return the already running) periodic runner."""
        if self._runner is None or not self._runner.running:
            self._runner = AutoRunner(self, interval or self.config.interval_seconds).start()
        return self._runner

    def stop_auto_runs(self, timeout: Optional[float] = None) -> None:
        if self._runner is not None:
            self._runner.stop(timeout)
            self._runner = None

    # ---------------------------------------------------------------- internals
    def _reference_price(self) -> float:
        try:
            price = float(self.price_source.get_current_price())
        except SourceUnavailableError:
            raise
        except Exception as exc:
            raise SourceUnavailableError(f"Price source failed: {exc}") from exc
        if not math.isfinite(price) or price <= 0.0:
            raise SourceUnavailableError(f"Price source returned an unusable price: {price!r}")
        return price

    def _simulate(self, req: SimulationRequest, price: float) -> list[np.ndarray]:
        """Run all batches and return them in batch order."""
        blocks = make_blocks(req.n_simulations, self.config.batch_size)
        sizes = [j - i for i, j in blocks]
        params = SamplerParams(start_price=price, volatility=req.volatility, horizon_days=req.horizon_days)
        run_seq = self.seed_seq.spawn(1)[0]
        backend = self.backend or create_backend(self.config.backend, req.n_workers)

        partials: dict[int, np.ndarray] = {}
        try:
            for seq, arr in backend.run_batches(
                sizes, params, run_seq.spawn(len(sizes)), timeout=self.config.run_timeout
            ):
                partials[seq] = arr
        except WorkerFailure:
            raise
        except Exception as exc:
            raise WorkerFailure(f"Worker pool failed: {exc}") from exc

        missing = [k for k in range(len(sizes)) if k not in partials]
        if missing:
            raise WorkerFailure(f"Batches {missing} did not complete", batch=missing[0])
        return [partials[k] for k in range(len(sizes))]

    def _execute(self, req: SimulationRequest) -> RunReport:
        price = req.start_price if req.start_price is not None else self._reference_price()
        logger.info(
            "Computing %d simulations over %d days with %d workers...",
            req.n_simulations, req.horizon_days, req.n_workers,
        )

        t0 = time.perf_counter()
        batches = self._simulate(req, price)
        processing_ms = int(round((time.perf_counter() - t0) * 1000))

        prices = np.concatenate(batches)
        stats = aggregate(prices, price, self.stats_engine)

        file_index = self._next_file_index
        self._next_file_index += 1
        data_source = self.store.write_raw_output(file_index, batches, price)

        summary = RunSummary(
            run_id=self._last_run_id + 1,
            timestamp=int(time.time() * 1000),
            reference_price=price,
            highest=stats.highest,
            target=stats.target,
            average=stats.average,
            lowest=stats.lowest,
            n_simulations=req.n_simulations,
            total_simulated=self._total_simulated + req.n_simulations,
            processing_ms=processing_ms,
            data_source=data_source,
        )
        report = RunReport(
            status=RunStatus.OK,
            overview=build_overview(stats),
            details=RunDetails(
                total_simulated=summary.total_simulated,
                processing_ms=processing_ms,
                processing_time=format_processing_time(processing_ms),
                uptime=format_uptime(self.uptime),
                run_count=summary.run_id,
                simulation_days=req.horizon_days,
                data_source=data_source,
                data_size=format_data_size(self.store.data_size()),
                distribution=stats.distribution,
            ),
        )

        # Nothing that can fail runs after the ledger row is committed.
        self.store.append_run(summary)
        self._last_run_id = summary.run_id
        self._total_simulated = summary.total_simulated
        self.cache.put(report)
        logger.info(
            "SIMULATION #%d | Total Simulations: %s | Price: %.2f | Processing Time: %s",
            summary.run_id, f"{req.n_simulations:,}", price, report.details.processing_time,
        )
        return report
