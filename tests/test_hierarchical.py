from __future__ import annotations

import pytest
from conftest import ScriptedPredictor, make_samples

from nn_supervisor.nn.guard import GuardedPredictor
from nn_supervisor.nn.hierarchical import MAX_DEPTH, train_hierarchical
from nn_supervisor.schemas import TrainParams


def _run(fn, dataset, params, **kw):
    scripted = ScriptedPredictor(fn=fn)
    g = GuardedPredictor(scripted)
    outcome = train_hierarchical(g, dataset, params, **kw)
    g.drain()
    g.close()
    return scripted, g, outcome


@pytest.mark.parametrize("n", [1, 2, 7, 10])
def test_first_round_split_sizes(params, n):
    dataset = make_samples([([float(i), 0.0], [float(i)]) for i in range(n)])
    scripted, _, outcome = _run(lambda x: [x[0]], dataset, params)

    first = outcome.rounds[0]
    assert first.trained == n // 2
    assert first.verified + first.unverified == n - n // 2
    assert len(scripted.predict_calls) == n - n // 2
    batches = scripted.batch_calls()
    if n // 2:
        assert [len(b[0]) for b in batches] == [n // 2]
        assert batches[0][0][0] == ([0.0, 0.0], [0.0])


def test_all_verified_stops_after_one_round(params):
    dataset = make_samples([([float(i), 1.0], [float(i) + 1.0]) for i in range(6)])
    scripted, g, outcome = _run(lambda x: [x[0] + x[1]], dataset, params)

    assert len(outcome.rounds) == 1
    assert not outcome.stopped_by_depth
    assert outcome.remaining == 0
    assert scripted.corrections() == []
    assert g.params == params


def test_recurses_on_failed_samples_only(params):
    dataset = make_samples([([0.0, 0.0], [0.0]), ([1.0, 0.0], [1.0]), ([2.0, 0.0], [2.0]), ([3.0, 0.0], [3.0])])
    # everything right except input 3
    scripted, _, outcome = _run(lambda x: [-1.0] if x[0] == 3.0 else [x[0]], dataset, params)

    assert outcome.rounds[0].verified == 1
    assert outcome.rounds[0].unverified == 1
    # later rounds only ever look at the failing sample
    assert all(r.trained == 0 and r.unverified == 1 for r in outcome.rounds[1:])
    assert {tuple(c) for c in scripted.predict_calls} == {(2.0, 0.0), (3.0, 0.0)}
    assert outcome.stopped_by_depth


def test_always_failing_terminates_by_depth(params):
    dataset = make_samples([([float(i), 0.0], [float(i)]) for i in range(8)])
    scripted, _, outcome = _run(lambda x: [999.0], dataset, params)

    assert outcome.stopped_by_depth
    assert len(outcome.rounds) == MAX_DEPTH + 1
    assert outcome.depth_reached == MAX_DEPTH
    assert [len(b[0]) for b in scripted.batch_calls()] == [4, 2, 1]
    # every failed verification asked for a correction
    assert len(scripted.corrections()) == sum(r.unverified for r in outcome.rounds)


def test_custom_depth_bound(params):
    dataset = make_samples([([0.0, 0.0], [1.0])] * 3)
    _, _, outcome = _run(lambda x: [0.0], dataset, params, max_depth=2)
    assert len(outcome.rounds) == 3
    assert outcome.stopped_by_depth


def test_empty_dataset_is_a_noop(params):
    scripted, g, outcome = _run(lambda x: [0.0], [], params)
    assert outcome.rounds == []
    assert not outcome.stopped_by_depth
    assert scripted.train_calls == []
    assert g.params == params


def test_dataset_not_mutated(params):
    dataset = make_samples([([0.0, 0.0], [0.123456789]), ([1.0, 0.0], [0.987654321])])
    _run(lambda x: [0.0], dataset, TrainParams(epochs=1, rate=0.1), max_depth=0)
    assert dataset[1].output == [0.987654321]


def test_diverged_predictor_never_verifies(params):
    dataset = make_samples([([float(i), 0.0], [float(i)]) for i in range(8)])
    _, _, outcome = _run(lambda x: [float("nan")], dataset, params)

    assert outcome.rounds[0].trained == 4
    assert outcome.rounds[0].verified == 0
    assert outcome.rounds[0].unverified == 4
    assert outcome.stopped_by_depth
