from __future__ import annotations

import enum
import time
from pathlib import Path
from typing import IO, Sequence

from loguru import logger

from .config import SupervisorConfig
from .dataset import read_training_data
from .errors import ConstructionError, DataLoadError, ExportError, RestoreError
from .nn.guard import GuardedPredictor
from .nn.hierarchical import train_hierarchical
from .nn.model import Predictor, TorchPredictor
from .nn.verify import predict_verified
from .rounding import RoundFunc
from .schemas import HierarchicalOutcome, TrainParams, VerificationOutcome


class State(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    TERMINATED = "terminated"


def rotated_name(path: Path, now: float | None = None) -> Path:
    """networks/output.network -> networks/output-1700000000.network"""

    ts = int(time.time() if now is None else now)
    return path.with_name(f"{path.stem}-{ts}{path.suffix}")


def rotate_snapshot(path: str | Path, now: float | None = None) -> Path | None:
    """Move an existing snapshot out of the way. Failure is logged, never raised."""

    path = Path(path)
    if not path.exists():
        return None
    target = rotated_name(path, now)
    try:
        path.rename(target)
    except OSError as e:
        logger.warning("failed to move old network {} to {}: {}", path, target, e)
        return None
    logger.info("rotated previous snapshot {} -> {}", path, target)
    return target


class Supervisor:
    """Owns the one predictor of the process from construction to export."""

    def __init__(self, engine: type[Predictor] = TorchPredictor):
        self.engine = engine
        self.state = State.UNINITIALIZED
        self._guard: GuardedPredictor | None = None

    # ---- Uninitialized -> Ready ----

    def construct(self, layers: Sequence[int], activation: str) -> None:
        self._expect(State.UNINITIALIZED)
        try:
            predictor = self.engine(list(layers), activation)
        except Exception as e:
            raise ConstructionError(f"failed to create the network {list(layers)} ({activation}): {e}") from e
        self._guard = GuardedPredictor(predictor)
        self.state = State.READY
        logger.info("created network layers={} activation={}", list(layers), activation)

    def restore(self, source: IO[bytes], params: TrainParams | None) -> None:
        self._expect(State.UNINITIALIZED)
        try:
            predictor = self.engine.deserialize(source)
        except Exception as e:
            raise RestoreError(f"failed to load network snapshot: {e}") from e
        self._guard = GuardedPredictor(predictor, params)
        self.state = State.READY
        logger.info("restored network from snapshot")

    def restore_from(self, path: str | Path, params: TrainParams | None) -> None:
        try:
            f = Path(path).open("rb")
        except OSError as e:
            raise RestoreError(f"failed to open source network {path}: {e}") from e
        with f:
            self.restore(f, params)

    # ---- Ready -> Ready ----

    @property
    def guard(self) -> GuardedPredictor:
        self._expect(State.READY)
        assert self._guard is not None
        return self._guard

    @property
    def predictor(self) -> Predictor:
        return self.guard.predictor

    @property
    def params(self) -> TrainParams | None:
        return self.guard.params

    def train_from(self, source: str | Path, params: TrainParams, *, n_level: bool = False) -> HierarchicalOutcome | None:
        guard = self.guard
        samples = read_training_data(source)
        logger.info("loaded {} training sample(s) from {}", len(samples), source)

        outcome = None
        try:
            if n_level:
                outcome = train_hierarchical(guard, samples, params)
            else:
                guard.train([s.to_pair() for s in samples], params)
        except ValueError as e:
            # width mismatch between the file and the network
            raise DataLoadError(f"training data from {source} does not fit the network: {e}") from e
        guard.bind(params)
        return outcome

    def predict(self, x: Sequence[float]) -> list[float]:
        return self.guard.predict(x)

    def predict_verified(
        self, x: Sequence[float], expected: list[float], round_fn: RoundFunc, precision: int
    ) -> VerificationOutcome:
        return predict_verified(self.guard, x, expected, round_fn, precision)

    # ---- Ready -> Terminated ----

    def export(self, sink: IO[bytes], *, drain_timeout: float | None = None) -> None:
        guard = self.guard
        guard.drain(drain_timeout)
        try:
            guard.serialize(sink)
        except Exception as e:
            raise ExportError(f"failed to export the network: {e}") from e

    def persist(self, path: str | Path, *, drain_timeout: float | None = None) -> Path:
        path = Path(path)
        self.guard.drain(drain_timeout)
        rotate_snapshot(path)
        # written beside the target and moved into place only once complete
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("wb") as f:
                self.export(f, drain_timeout=drain_timeout)
            tmp.replace(path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise ExportError(f"failed to write the network to {path}: {e}") from e
        except ExportError:
            tmp.unlink(missing_ok=True)
            raise
        logger.info("network written to {}", path)
        return path

    def shutdown(self, path: str | Path, *, drain_timeout: float | None = None) -> Path:
        try:
            return self.persist(path, drain_timeout=drain_timeout)
        finally:
            self.guard.close()
            self.state = State.TERMINATED

    def _expect(self, state: State) -> None:
        if self.state is not state:
            raise RuntimeError(f"supervisor is {self.state.value}, expected {state.value}")

    # ---- startup routing ----

    @classmethod
    def from_config(cls, cfg: SupervisorConfig, engine: type[Predictor] = TorchPredictor) -> "Supervisor":
        """New network trained from the data source, or a restored one optionally retrained."""

        sup = cls(engine)
        params = cfg.train_params()
        source = cfg.learn.training_data_source

        if not cfg.restore_from:
            if not source:
                raise DataLoadError("a new network needs a training data source")
            sup.construct(cfg.network.layers(), cfg.network.activation)
            sup.train_from(source, params, n_level=cfg.learn.n_level)
            return sup

        sup.restore_from(cfg.restore_from, params)
        if source:
            sup.train_from(source, params, n_level=cfg.learn.n_level)
        return sup
