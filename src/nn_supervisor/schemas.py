from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class TrainingSample:
    input: list[float]
    output: list[float]

    def to_pair(self) -> tuple[list[float], list[float]]:
        return self.input, self.output


@dataclass(frozen=True)
class TrainParams:
    epochs: int
    rate: float
    debug: bool = False

    def __post_init__(self) -> None:
        if int(self.epochs) <= 0:
            raise ValueError(f"epochs must be positive, got {self.epochs}")
        if float(self.rate) <= 0.0:
            raise ValueError(f"rate must be positive, got {self.rate}")


@dataclass(frozen=True)
class VerificationOutcome:
    predicted: list[float]
    expected: list[float]  # post-rounding
    verified: bool


@dataclass(frozen=True)
class RoundStats:
    depth: int
    trained: int
    verified: int
    unverified: int


@dataclass
class HierarchicalOutcome:
    rounds: list[RoundStats] = field(default_factory=list)
    stopped_by_depth: bool = False

    @property
    def depth_reached(self) -> int:
        return self.rounds[-1].depth if self.rounds else -1

    @property
    def remaining(self) -> int:
        """Samples still failing verification when the run stopped."""
        return self.rounds[-1].unverified if self.rounds else 0
