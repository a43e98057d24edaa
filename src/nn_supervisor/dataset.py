from __future__ import annotations

from pathlib import Path
from typing import Iterable

import numpy as np

from .errors import DataLoadError, MissingInputError, RequestParseError
from .schemas import TrainingSample


def parse_vector(token: str) -> list[float]:
    """Parse a comma-separated list of floats. Raises ValueError on a bad number."""

    return [float(v) for v in token.split(",")]


def _parse_line(line: str, lineno: int) -> TrainingSample:
    fields = line.split()
    if len(fields) < 2:
        raise DataLoadError(f"line {lineno}: expected '<input> <output>', got {line!r}")
    try:
        inp = parse_vector(fields[0])
        out = parse_vector(fields[1])
    except ValueError as e:
        raise DataLoadError(f"line {lineno}: {e}") from e
    return TrainingSample(input=inp, output=out)


def read_training_data(path: str | Path) -> list[TrainingSample]:
    """Load a whitespace/comma training file, one sample per line.

    Blank lines are skipped. Any malformed line fails the whole load.
    """

    path = Path(path)
    samples: list[TrainingSample] = []
    try:
        with path.open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                samples.append(_parse_line(line, lineno))
    except OSError as e:
        raise DataLoadError(f"failed to read data from {path}: {e}") from e
    return samples


def write_training_data(path: str | Path, samples: Iterable[TrainingSample]) -> int:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    n = 0
    with path.open("w", encoding="utf-8") as f:
        for s in samples:
            f.write(",".join(f"{v:f}" for v in s.input))
            f.write(" ")
            f.write(",".join(f"{v:g}" for v in s.output))
            f.write("\n")
            n += 1
    return n


def parse_predict_request(line: str) -> tuple[list[float], list[float] | None]:
    """Parse '<input>' or '<input> <expected>' from the interactive prompt."""

    line = line.strip()
    if not line:
        raise MissingInputError("missing input, provide a valid input")

    fields = line.split(" ")
    if len(fields) > 2:
        raise RequestParseError(f"expected at most 2 space-separated fields, got {len(fields)}")

    try:
        inp = parse_vector(fields[0])
        expected = parse_vector(fields[1]) if len(fields) == 2 else None
    except ValueError as e:
        raise RequestParseError(f"failed to parse input: {e}") from e
    return inp, expected


def generate_two_class(*, n: int = 32767, seed: int | None = None) -> list[TrainingSample]:
    """Random points in the unit square labelled by which coordinate is larger.

    a > b -> [1, 0], otherwise [0, 1].
    """

    rng = np.random.default_rng(seed)
    pts = rng.random((n, 2))
    out: list[TrainingSample] = []
    for a, b in pts:
        first = bool(a > b)
        out.append(
            TrainingSample(
                input=[float(a), float(b)],
                output=[float(first), float(not first)],
            )
        )
    return out
