import pytest

from jpegbudget.config import CompressionConfig
from jpegbudget.search import SearchState, SizeTargetSearch, search
from jpegbudget.tasks import EncodeError, InputReadError
from tests.helpers import FakeEncoder

RAW = b"raw image bytes"


def make_config(**overrides):
    values = dict(target_max_bytes=100_000, min_quality=10, max_quality=90,
                  probe_quality=80, convergence_gap=0, worker_count=1)
    values.update(overrides)
    return CompressionConfig(**values)


def test_probe_within_budget_short_circuits(fake_encoder):
    outcome = search(RAW, make_config(), fake_encoder)
    assert outcome.satisfied
    assert outcome.quality == 80
    assert outcome.size == 80_000
    assert fake_encoder.calls == [80]


def test_binary_search_finds_highest_quality_under_budget(fake_encoder):
    outcome = search(RAW, make_config(target_max_bytes=45_500), fake_encoder)
    assert outcome.satisfied
    assert outcome.quality == 45
    assert outcome.size == 45_000
    assert fake_encoder.calls[0] == 80


def test_budget_is_inclusive(fake_encoder):
    outcome = search(RAW, make_config(target_max_bytes=45_000), fake_encoder)
    assert outcome.quality == 45
    assert outcome.size == 45_000


def test_interval_strictly_narrows():
    encoder = FakeEncoder()
    outcome = search(RAW, make_config(target_max_bytes=37_200), encoder)
    binary_trials = outcome.trials[1:]
    assert len(binary_trials) >= 2
    for before, after in zip(binary_trials, binary_trials[1:]):
        assert after.low >= before.low
        assert after.high <= before.high
        assert (after.high - after.low) < (before.high - before.low)
    for trial in binary_trials:
        assert trial.low <= trial.quality <= trial.high


def test_unsatisfiable_returns_smallest_at_min_quality():
    encoder = FakeEncoder(lambda raw, q: 500_000 + q * 1000)
    outcome = search(RAW, make_config(convergence_gap=1), encoder)
    assert not outcome.satisfied
    assert outcome.quality == 10
    assert outcome.size == min(t.size for t in outcome.trials)
    assert 10 in encoder.calls


def test_non_monotonic_sizes_keep_best_seen():
    sizes = {q: 200_000 - q * 100 if q % 2 else 150_000 + q * 10 for q in range(1, 101)}
    encoder = FakeEncoder(lambda raw, q: sizes[q])
    outcome = search(RAW, make_config(), encoder)
    assert not outcome.satisfied
    assert outcome.size == min(t.size for t in outcome.trials)


def test_size_spike_at_midpoint_still_finds_a_fit():
    # Quality 50 is unexpectedly over budget although 60 would fit.
    sizes = {q: q * 1000 for q in range(1, 101)}
    sizes[50] = 500_000
    encoder = FakeEncoder(lambda raw, q: sizes[q])
    outcome = search(RAW, make_config(target_max_bytes=60_000, probe_quality=90), encoder)
    assert outcome.satisfied
    assert outcome.quality == 49
    assert outcome.size <= 60_000


def test_gap_trades_precision_for_fewer_encodes():
    exact = FakeEncoder()
    coarse = FakeEncoder()
    config = make_config(target_max_bytes=33_300)
    exact_outcome = search(RAW, config, exact)
    coarse_outcome = search(RAW, make_config(target_max_bytes=33_300, convergence_gap=8), coarse)
    assert exact_outcome.quality == 33
    assert coarse_outcome.satisfied
    assert coarse_outcome.quality <= 33
    assert len(coarse.calls) < len(exact.calls)


def test_encoder_failing_every_call_is_an_error():
    with pytest.raises(EncodeError):
        search(RAW, make_config(target_max_bytes=1_000), FakeEncoder(fail=True))


def test_engine_is_reusable_across_images(fake_encoder):
    engine = SizeTargetSearch(fake_encoder)
    first = engine.search(RAW, make_config(target_max_bytes=50_000))
    second = engine.search(RAW, make_config(target_max_bytes=20_000))
    assert first.quality == 50
    assert second.quality == 20


def test_state_tracks_smallest_over_budget():
    state = SearchState(low=10, high=90)
    assert not state.record(50, b"x" * 300, target_bytes=100)
    assert not state.record(40, b"x" * 200, target_bytes=100)
    assert not state.record(45, b"x" * 250, target_bytes=100)
    assert state.best_over[0] == 40
    assert state.best_under is None
    assert state.record(20, b"x" * 90, target_bytes=100)
    assert state.best_under[0] == 20


def test_each_quality_is_encoded_at_most_once():
    encoder = FakeEncoder()
    outcome = search(RAW, make_config(target_max_bytes=79_500), encoder)
    assert outcome.quality == 79
    assert len(encoder.calls) == len(set(encoder.calls))
    assert len(outcome.trials) == len(encoder.calls)


def test_decode_failure_stops_search_at_once():
    class Unreadable:
        calls = 0

        def encode(self, raw, quality):
            self.calls += 1
            raise InputReadError("Unable to decode image")

    encoder = Unreadable()
    with pytest.raises(InputReadError):
        search(RAW, make_config(target_max_bytes=1_000), encoder)
    assert encoder.calls == 1
