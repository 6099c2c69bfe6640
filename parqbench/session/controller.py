"""Session controller: owns the viewed dataset and arbitrates background work.

Every request gets a generation number. Only the completion whose generation is
the most recently submitted one may change the committed frame; anything older is
dropped, whatever order the workers finish in.
"""

from __future__ import annotations

import queue
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass
from typing import Union

from parqbench.frames import executor as query_executor
from parqbench.frames import loader, sorter
from parqbench.frames.types import TabularFrame
from parqbench.shared.cancel import CancelToken
from parqbench.shared.config import AppConfig
from parqbench.shared.exceptions import ErrorKind, FrameError, NoDataLoadedError
from parqbench.shared.logging import Logger, get_logger

from .publisher import ViewStatePublisher
from .types import (
    ApplyQuery,
    ErrorInfo,
    InFlight,
    LoadFile,
    Request,
    SessionState,
    SortBy,
    Status,
    ViewState,
)

TaskResult = Union[TabularFrame, ErrorInfo]


@dataclass(frozen=True, slots=True)
class Completion:
    """A worker's generation-tagged result, waiting to be reconciled."""

    generation: int
    result: TaskResult


class SessionController:
    """Submit/complete state machine publishing ViewState snapshots."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        executor: Executor | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._loader_settings = config.loader if config else loader.DEFAULT_LOADER_SETTINGS
        max_workers = config.session.max_workers if config else 1
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="parqbench-worker",
        )
        self._logger = logger or get_logger()
        self._lock = threading.Lock()
        self._state = SessionState()
        self._publisher = ViewStatePublisher(ViewState.from_state(self._state))
        self._completions: queue.SimpleQueue[Completion] = queue.SimpleQueue()
        self._future: Future | None = None
        self._closed = False

    # ----- Interactive-thread API -----------------------------------------------------------

    def submit(self, request: Request) -> int:
        """Supersede any in-flight task with ``request`` and return its generation."""

        with self._lock:
            if self._closed:
                raise RuntimeError("Session controller is closed.")
            state = self._state
            state.current_generation += 1
            generation = state.current_generation
            superseded = state.in_flight

            token = CancelToken(self._logger)
            state.in_flight = InFlight(generation=generation, token=token, request=request)
            state.status = request.status
            base = self._base_frame(request)
            if superseded is not None:
                superseded.token.cancel()
                self._logger.debug(f"Generation {superseded.generation} superseded by {generation}")
            self._publish()
            self._logger.debug(f"Submitted generation {generation}: {request!r}")
            self._future = self._executor.submit(self._run, generation, request, base, token)
        return generation

    def snapshot(self) -> ViewState:
        return self._publisher.snapshot()

    def process_completions(self) -> int:
        """Reconcile every completion posted so far; returns how many were handled."""

        handled = 0
        while True:
            try:
                completion = self._completions.get_nowait()
            except queue.Empty:
                return handled
            self.on_task_complete(completion.generation, completion.result)
            handled += 1

    def wait_idle(self, timeout: float | None = None) -> ViewState:
        """Block until the in-flight task settles, then reconcile its completion.

        Returns the snapshot as of that moment; if ``timeout`` expires first the
        snapshot still carries a busy status.
        """

        self.process_completions()
        with self._lock:
            future = self._future if self._state.status.busy else None
        if future is not None:
            wait_futures([future], timeout=timeout)
        self.process_completions()
        return self.snapshot()

    def cancel(self) -> bool:
        """Signal the in-flight task to stop; returns False when nothing is running."""

        with self._lock:
            in_flight = self._state.in_flight
            if in_flight is None:
                return False
            in_flight.token.cancel()
            self._logger.debug(f"Cancellation requested for generation {in_flight.generation}")
            return True

    # ----- Completion handling --------------------------------------------------------------

    def on_task_complete(self, generation: int, result: TaskResult) -> bool:
        """Apply a task result if it belongs to the newest request.

        Returns True when the result changed the session state, False when it was
        discarded as stale or already settled.
        """

        with self._lock:
            state = self._state
            if generation > state.current_generation:
                raise ValueError(
                    f"Completion for generation {generation} was never submitted "
                    f"(latest is {state.current_generation})."
                )
            if generation < state.current_generation:
                self._logger.debug(
                    f"Discarding stale result for generation {generation} "
                    f"(latest is {state.current_generation})"
                )
                return False
            in_flight = state.in_flight
            if in_flight is None or in_flight.generation != generation:
                self._logger.debug(f"Discarding settled result for generation {generation}")
                return False

            state.in_flight = None
            self._future = None
            if isinstance(result, ErrorInfo):
                self._apply_failure(in_flight, result)
            else:
                self._apply_commit(in_flight, result)
            self._publish()
            return True

    # ----- Lifecycle ------------------------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._state.in_flight is not None:
                self._state.in_flight.token.cancel()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> SessionController:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def current_generation(self) -> int:
        with self._lock:
            return self._state.current_generation

    @property
    def last_error(self) -> ErrorInfo | None:
        with self._lock:
            return self._state.last_error

    # ----- Internal helpers -----------------------------------------------------------------

    def _base_frame(self, request: Request) -> TabularFrame | None:
        if isinstance(request, ApplyQuery) and request.against_source:
            return self._state.source
        return self._state.committed

    def _run(
        self,
        generation: int,
        request: Request,
        base: TabularFrame | None,
        token: CancelToken,
    ) -> None:
        """Worker entry point: never raises, always posts exactly one completion."""

        result: TaskResult
        try:
            result = self._execute(request, base, token)
        except FrameError as exc:
            result = ErrorInfo.from_exception(exc)
        except Exception as exc:
            self._logger.error(f"Generation {generation} failed unexpectedly: {exc!r}")
            result = ErrorInfo(kind=ErrorKind.INTERNAL, message=str(exc) or type(exc).__name__)
        self._completions.put(Completion(generation=generation, result=result))

    def _execute(
        self,
        request: Request,
        base: TabularFrame | None,
        token: CancelToken,
    ) -> TabularFrame:
        token.raise_if_cancelled()
        if isinstance(request, LoadFile):
            return loader.load(
                request.source,
                token,
                name=request.name,
                csv_delimiter=request.csv_delimiter,
                settings=self._loader_settings,
                logger=self._logger,
            )
        if base is None:
            raise NoDataLoadedError("No data loaded. Open a file first.")
        if isinstance(request, ApplyQuery):
            return query_executor.execute(base, request.sql_text, request.table_alias, token)
        if isinstance(request, SortBy):
            return sorter.sort(base, request.columns, token)
        raise TypeError(f"Unsupported request type: {type(request).__name__}")

    def _apply_commit(self, in_flight: InFlight, frame: TabularFrame) -> None:
        state = self._state
        request = in_flight.request
        state.committed = frame
        state.committed_generation = in_flight.generation
        state.last_error = None
        state.status = Status.READY
        if isinstance(request, LoadFile):
            state.source = frame
            state.active_query = None
            state.active_sort = ()
        elif isinstance(request, ApplyQuery):
            state.active_query = request.sql_text
            state.active_sort = ()
        elif isinstance(request, SortBy):
            state.active_sort = request.columns
        self._logger.debug(
            f"Committed generation {in_flight.generation}: {frame.row_count} row(s) x {frame.width} column(s)"
        )

    def _apply_failure(self, in_flight: InFlight, error: ErrorInfo) -> None:
        state = self._state
        if error.kind is ErrorKind.CANCELLED:
            # Not a user-visible error: fall back to whatever is committed.
            state.status = Status.READY if state.committed is not None else Status.IDLE
            self._logger.debug(f"Generation {in_flight.generation} cancelled")
            return
        state.last_error = error
        state.status = Status.FAILED
        self._logger.debug(f"Generation {in_flight.generation} failed: {error.kind.value}: {error.message}")

    def _publish(self) -> None:
        self._publisher.publish(ViewState.from_state(self._state))
