from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Callable, Sequence

import pytest
from loguru import logger

from nn_supervisor.nn.guard import GuardedPredictor
from nn_supervisor.schemas import TrainingSample, TrainParams


class ScriptedPredictor:
    """Predictor double: answers from `fn` and records every call."""

    def __init__(
        self,
        layers: Sequence[int] = (2, 1),
        activation: str = "ReLU",
        fn: Callable[[list[float]], list[float]] | None = None,
        train_delay: float = 0.0,
    ):
        layers = list(layers)
        if len(layers) < 2:
            raise ValueError("need at least two layers")
        self.layers = layers
        self.activation = activation
        self.fn = fn or (lambda x: [0.0] * self.layers[-1])
        self.train_delay = train_delay

        self.predict_calls: list[list[float]] = []
        self.train_calls: list[tuple[list, int, float, bool]] = []
        self.active = 0
        self.max_active = 0
        self._count_lock = threading.Lock()

    def _enter(self) -> None:
        with self._count_lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)

    def _leave(self) -> None:
        with self._count_lock:
            self.active -= 1

    def predict(self, x):
        self._enter()
        try:
            self.predict_calls.append(list(x))
            return list(self.fn(list(x)))
        finally:
            self._leave()

    def train(self, batch, epochs, rate, debug):
        self._enter()
        try:
            if self.train_delay:
                time.sleep(self.train_delay)
            self.train_calls.append(([(list(a), list(b)) for a, b in batch], epochs, rate, debug))
        finally:
            self._leave()

    def serialize(self, sink):
        sink.write(
            json.dumps({"layers": self.layers, "activation": self.activation, "trained": len(self.train_calls)}).encode()
        )

    @classmethod
    def deserialize(cls, source):
        d = json.loads(source.read())
        return cls(d["layers"], d["activation"])

    def batch_calls(self) -> list[tuple[list, int, float, bool]]:
        """Train calls that were not single-sample corrections."""
        return [c for c in self.train_calls if not c[3]]

    def corrections(self) -> list[tuple[list, int, float, bool]]:
        return [c for c in self.train_calls if c[3]]


@pytest.fixture(autouse=True)
def _quiet_logger():
    yield
    logger.remove()


@pytest.fixture
def params() -> TrainParams:
    return TrainParams(epochs=7, rate=0.5, debug=False)


@pytest.fixture
def scripted() -> ScriptedPredictor:
    return ScriptedPredictor()


@pytest.fixture
def guarded(scripted, params):
    g = GuardedPredictor(scripted, params)
    yield g
    g.close()


def make_samples(rows: Sequence[tuple[Sequence[float], Sequence[float]]]) -> list[TrainingSample]:
    return [TrainingSample(input=list(a), output=list(b)) for a, b in rows]


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    p = tmp_path / "train.txt"
    p.write_text("0.9,0.1 1,0\n0.1,0.9 0,1\n\n0.8,0.3 1,0\n", encoding="utf-8")
    return p
