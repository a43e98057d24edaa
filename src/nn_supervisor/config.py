from __future__ import annotations

from dataclasses import dataclass, field

from .schemas import TrainParams


@dataclass(frozen=True)
class NetworkConfig:
    input_layers: int = 2
    hidden_layers: tuple[int, ...] = (20, 20)
    output_layers: int = 2
    activation: str = "ReLU"

    def layers(self) -> list[int]:
        return [int(self.input_layers), *(int(h) for h in self.hidden_layers), int(self.output_layers)]


@dataclass(frozen=True)
class LearnConfig:
    training_data_source: str | None = None
    epochs: int = 10
    rate: float = 1.2
    n_level: bool = True


@dataclass(frozen=True)
class SupervisorConfig:
    debug: bool = False
    restore_from: str | None = None
    persist_to: str = "networks/output.network"

    network: NetworkConfig = field(default_factory=NetworkConfig)
    learn: LearnConfig = field(default_factory=LearnConfig)

    def train_params(self) -> TrainParams:
        return TrainParams(epochs=int(self.learn.epochs), rate=float(self.learn.rate), debug=bool(self.debug))


def parse_int_list(s: str) -> tuple[int, ...]:
    """'20,20' -> (20, 20). Empty string means no hidden layers."""

    return tuple(int(x.strip()) for x in s.split(",") if x.strip())
