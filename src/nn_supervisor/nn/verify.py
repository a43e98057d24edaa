from __future__ import annotations

import math
from typing import Sequence

from loguru import logger

from ..rounding import RoundFunc
from ..schemas import TrainingSample, VerificationOutcome
from .guard import GuardedPredictor

TOLERANCE = 0.00005


def predict_verified(
    guarded: GuardedPredictor,
    x: Sequence[float],
    expected: list[float],
    round_fn: RoundFunc,
    precision: int,
    *,
    tolerance: float = TOLERANCE,
) -> VerificationOutcome:
    """Predict `x` and check it against `expected`.

    `expected` is rounded in place. Only the overlapping prefix of the two
    vectors is compared, and a non-finite value on either side is a miss.
    On a miss, a one-sample correction on (x, rounded expected) is queued and
    this returns without waiting for it. A non-finite expected vector is never
    trained on.
    """

    predicted = guarded.predict(x)

    for i, v in enumerate(expected):
        expected[i] = round_fn(v, precision)

    for p, e in zip(predicted, expected):
        # a diverged network (nan/inf) never verifies
        if not (math.isfinite(p) and math.isfinite(e)) or not abs(e - round_fn(p, precision)) <= tolerance:
            if all(math.isfinite(v) for v in expected):
                guarded.submit_correction(TrainingSample(input=list(x), output=list(expected)))
            else:
                logger.warning("expected value {} is not finite; no correction queued", expected)
            return VerificationOutcome(predicted=predicted, expected=expected, verified=False)

    return VerificationOutcome(predicted=predicted, expected=expected, verified=True)
