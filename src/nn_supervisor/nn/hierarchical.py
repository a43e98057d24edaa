from __future__ import annotations

from typing import Sequence

from loguru import logger

from ..rounding import no_round
from ..schemas import HierarchicalOutcome, RoundStats, TrainingSample, TrainParams
from .guard import GuardedPredictor
from .verify import predict_verified

MAX_DEPTH = 10
VERIFY_PRECISION = 5


def train_hierarchical(
    guarded: GuardedPredictor,
    dataset: Sequence[TrainingSample],
    params: TrainParams,
    depth: int = 0,
    *,
    max_depth: int = MAX_DEPTH,
    outcome: HierarchicalOutcome | None = None,
) -> HierarchicalOutcome:
    """Train on the first half, verify the second, recurse on what failed.

    Stops when nothing is left to retrain or once `depth` exceeds
    `max_depth`; samples still failing at that point are dropped.
    """

    if outcome is None:
        outcome = HierarchicalOutcome()

    if depth > max_depth:
        outcome.stopped_by_depth = True
        logger.info("n-level: depth limit {} reached, {} sample(s) left unverified", max_depth, len(dataset))
        return outcome

    if depth == 0:
        guarded.bind(params)

    if not dataset:
        return outcome

    half = len(dataset) // 2
    first, rest = dataset[:half], dataset[half:]

    guarded.train([s.to_pair() for s in first], params)

    unverified: list[TrainingSample] = []
    for s in rest:
        res = predict_verified(guarded, s.input, list(s.output), no_round, VERIFY_PRECISION)
        if not res.verified:
            unverified.append(s)

    outcome.rounds.append(
        RoundStats(depth=depth, trained=len(first), verified=len(rest) - len(unverified), unverified=len(unverified))
    )
    logger.info(
        "n-level depth={}: trained={} verified={} unverified={}",
        depth,
        len(first),
        len(rest) - len(unverified),
        len(unverified),
    )

    return train_hierarchical(guarded, unverified, params, depth + 1, max_depth=max_depth, outcome=outcome)
