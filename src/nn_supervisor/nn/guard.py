from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import replace
from typing import IO, Sequence

from loguru import logger

from ..schemas import TrainingSample, TrainParams
from .model import Pair, Predictor


class GuardedPredictor:
    """Single owner of a predictor.

    Every read or write of the wrapped predictor takes one lock, so a
    correction running on the worker thread never interleaves with a predict,
    a batch train or an export. Corrections go through a one-thread executor
    and are applied in submission order.
    """

    def __init__(self, predictor: Predictor, params: TrainParams | None = None):
        self._predictor = predictor
        self._lock = threading.Lock()
        self._pending: set[Future] = set()
        self._pending_lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self.params = params

    @property
    def predictor(self) -> Predictor:
        return self._predictor

    def bind(self, params: TrainParams) -> None:
        """Make `params` the parameters used by later corrections."""
        self.params = params

    def predict(self, x: Sequence[float]) -> list[float]:
        with self._lock:
            return list(self._predictor.predict(x))

    def train(self, batch: Sequence[Pair], params: TrainParams) -> None:
        if not batch:
            return
        with self._lock:
            self._predictor.train(batch, params.epochs, params.rate, params.debug)

    def serialize(self, sink: IO[bytes]) -> None:
        with self._lock:
            self._predictor.serialize(sink)

    # ---- online correction ----

    def submit_correction(self, sample: TrainingSample) -> bool:
        """Queue a one-sample retrain with debug forced on. Returns False if skipped."""

        if self.params is None:
            logger.warning("no training parameters bound; skipping correction for {}", sample.input)
            return False

        params = replace(self.params, debug=True)
        pair = (list(sample.input), list(sample.output))

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="correction")
        fut = self._executor.submit(self._correct, pair, params)
        with self._pending_lock:
            self._pending.add(fut)
        fut.add_done_callback(self._forget)
        return True

    def _correct(self, pair: Pair, params: TrainParams) -> None:
        logger.debug("correcting on {} -> {}", pair[0], pair[1])
        try:
            self.train([pair], params)
        except Exception:
            # the future is never awaited
            logger.exception("correction failed for {}", pair[0])
            raise

    def _forget(self, fut: Future) -> None:
        with self._pending_lock:
            self._pending.discard(fut)

    @property
    def pending(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def drain(self, timeout: float | None = None) -> int:
        """Wait for queued corrections. Returns how many were cancelled unrun."""

        with self._pending_lock:
            futs = set(self._pending)
        if not futs:
            return 0

        logger.info("waiting for {} in-flight correction(s)", len(futs))
        _, not_done = wait(futs, timeout=timeout)
        abandoned = 0
        running = 0
        for fut in not_done:
            if fut.cancel():
                abandoned += 1
            else:
                running += 1
        if abandoned:
            logger.warning("abandoning {} queued correction(s) after {}s", abandoned, timeout)
        if running:
            # still holds or waits for the predictor lock; later calls see its result
            logger.info("{} correction(s) already running, letting them finish", running)
        return abandoned

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None
