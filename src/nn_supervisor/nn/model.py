from __future__ import annotations

from typing import IO, Callable, Protocol, Sequence

import torch
import torch.nn as nn
import torch.nn.functional as F
from loguru import logger
from tqdm import tqdm

Pair = tuple[Sequence[float], Sequence[float]]


class Predictor(Protocol):
    """What the supervisor needs from a network engine."""

    def predict(self, x: Sequence[float]) -> list[float]: ...

    def train(self, batch: Sequence[Pair], epochs: int, rate: float, debug: bool) -> None: ...

    def serialize(self, sink: IO[bytes]) -> None: ...

    @classmethod
    def deserialize(cls, source: IO[bytes]) -> "Predictor": ...


def bent_identity(x: torch.Tensor) -> torch.Tensor:
    return (torch.sqrt(x * x + 1.0) - 1.0) / 2.0 + x


ACTIVATIONS: dict[str, Callable[[torch.Tensor], torch.Tensor]] = {
    "Sigmoid": torch.sigmoid,
    "BentIdentity": bent_identity,
    "ReLU": F.relu,
    "LeakyReLU": lambda x: F.leaky_relu(x, negative_slope=0.01),
    "ArSinH": torch.asinh,
}


def canonical_activation(name: str) -> str:
    for key in ACTIVATIONS:
        if key.lower() == name.strip().lower():
            return key
    raise ValueError(f"unknown activation {name!r}; choose one of {sorted(ACTIVATIONS)}")


class FeedForward(nn.Module):
    """Plain MLP; the same activation follows every layer, output included."""

    def __init__(self, layers: Sequence[int], activation: str):
        super().__init__()
        self.activation = canonical_activation(activation)
        self._act = ACTIVATIONS[self.activation]
        self.linears = nn.ModuleList(nn.Linear(d_in, d_out) for d_in, d_out in zip(layers[:-1], layers[1:]))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        for lin in self.linears:
            x = self._act(lin(x))
        return x


class TorchPredictor:
    """Default engine: a FeedForward network trained by per-sample SGD."""

    dtype = torch.float64

    def __init__(self, layers: Sequence[int], activation: str = "ReLU"):
        layers = [int(n) for n in layers]
        if len(layers) < 2:
            raise ValueError(f"need at least input and output layers, got {layers}")
        if any(n <= 0 for n in layers):
            raise ValueError(f"layer widths must be positive, got {layers}")

        self.layers = layers
        self.model = FeedForward(layers, activation).to(self.dtype)
        self.activation = self.model.activation

    @property
    def n_in(self) -> int:
        return self.layers[0]

    @property
    def n_out(self) -> int:
        return self.layers[-1]

    def _check(self, x: Sequence[float], width: int, what: str) -> None:
        if len(x) != width:
            raise ValueError(f"{what} width {len(x)} does not match network width {width}")

    @torch.no_grad()
    def predict(self, x: Sequence[float]) -> list[float]:
        self._check(x, self.n_in, "input")
        self.model.eval()
        t = torch.as_tensor([list(x)], dtype=self.dtype)
        return [float(v) for v in self.model(t)[0]]

    def train(self, batch: Sequence[Pair], epochs: int, rate: float, debug: bool = False) -> None:
        if not batch:
            return

        for inp, out in batch:
            self._check(inp, self.n_in, "input")
            self._check(out, self.n_out, "output")

        X = torch.as_tensor([list(p[0]) for p in batch], dtype=self.dtype)
        Y = torch.as_tensor([list(p[1]) for p in batch], dtype=self.dtype)
        opt = torch.optim.SGD(self.model.parameters(), lr=float(rate))

        self.model.train()
        pbar = tqdm(range(int(epochs)), desc=f"Train n={len(batch)}", disable=not debug, leave=False)
        loss_sum = 0.0
        for _ in pbar:
            loss_sum = 0.0
            for i in range(X.shape[0]):
                opt.zero_grad(set_to_none=True)
                # half squared error: plain backprop delta, independent of output width
                loss = 0.5 * ((self.model(X[i]) - Y[i]) ** 2).sum()
                loss.backward()
                opt.step()
                loss_sum += float(loss.item())
            if debug:
                pbar.set_postfix(loss=f"{loss_sum / X.shape[0]:.6f}")
        self.model.eval()

        if debug:
            logger.debug(
                "trained on {} samples for {} epochs at rate {} (last epoch loss {:.6f})",
                len(batch),
                epochs,
                rate,
                loss_sum / X.shape[0],
            )

    def serialize(self, sink: IO[bytes]) -> None:
        torch.save(
            {"layers": list(self.layers), "activation": self.activation, "model": self.model.state_dict()},
            sink,
        )

    @classmethod
    def deserialize(cls, source: IO[bytes]) -> "TorchPredictor":
        ckpt = torch.load(source, map_location="cpu", weights_only=True)
        net = cls(ckpt["layers"], ckpt["activation"])
        net.model.load_state_dict(ckpt["model"])
        net.model.eval()
        return net
