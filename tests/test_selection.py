"""Tests for the wheel selection engine."""

import asyncio
import random
from datetime import UTC, datetime

import pytest

from zap_wheel.domain.errors import EmptyPoolError, SpinCancelledError
from zap_wheel.domain.sessions import Registrant
from zap_wheel.services.selection import (
    SelectionEngine,
    SpinState,
    draw_rotation,
    ease_out_angle,
    winner_index,
)
from tests.conftest import FakeClock, make_engine


def _pool(*names: str) -> list[Registrant]:
    return [
        Registrant(
            id=f"r-{name}",
            session_id="stream-1",
            display_name=name,
            payout_address=f"{name}@speed.app",
            registered_at=datetime(2024, 5, 1, tzinfo=UTC),
        )
        for name in names
    ]


def test_winner_index_table_for_four_segments() -> None:
    expected = {
        0: 0,
        45: 3,
        90: 3,
        91: 2,
        180: 2,
        270: 1,
        271: 0,
        359: 0,
        360: 0,
        720 + 180: 2,
    }
    for angle, index in expected.items():
        assert winner_index(angle, 4) == index, angle


def test_winner_index_table_for_three_segments() -> None:
    expected = {0: 0, 60: 2, 120: 2, 121: 1, 240: 1, 241: 0, 300: 0}
    for angle, index in expected.items():
        assert winner_index(angle, 3) == index, angle


def test_winner_index_stays_in_range() -> None:
    rng = random.Random(3)
    for size in range(1, 12):
        for _ in range(200):
            index = winner_index(rng.uniform(0, 3000), size)
            assert 0 <= index < size


def test_winner_index_rejects_empty_pool() -> None:
    with pytest.raises(EmptyPoolError):
        winner_index(90, 0)


def test_spec_pool_winners_by_angle() -> None:
    pool = _pool("A", "B", "C", "D")

    assert pool[winner_index(0, len(pool))].display_name == "A"
    assert pool[winner_index(271, len(pool))].display_name == "A"
    assert pool[winner_index(90, len(pool))].display_name == "D"


def test_ease_out_curve_endpoints_and_shape() -> None:
    rotation = 2000.0
    duration = 3000

    samples = [ease_out_angle(rotation, duration, t) for t in range(0, 3001, 100)]

    assert samples[0] == 0.0
    assert samples[-1] == rotation
    assert all(b >= a for a, b in zip(samples, samples[1:], strict=False))
    assert ease_out_angle(rotation, duration, 1500) == pytest.approx(1750.0)
    assert ease_out_angle(rotation, duration, 5000) == rotation
    assert ease_out_angle(rotation, duration, -10) == 0.0


def test_ease_out_requires_positive_duration() -> None:
    with pytest.raises(ValueError):
        ease_out_angle(1800, 0, 10)


def test_draw_rotation_within_turn_range() -> None:
    rng = random.Random(11)
    draws = [draw_rotation(rng) for _ in range(1000)]

    assert min(draws) >= 1800
    assert max(draws) <= 2880
    assert max(draws) - min(draws) > 900


def test_draw_rotation_rejects_inverted_range() -> None:
    with pytest.raises(ValueError):
        draw_rotation(random.Random(1), min_turns=8, max_turns=5)


def test_empty_pool_leaves_engine_idle(clock: FakeClock) -> None:
    engine = make_engine(clock)

    with pytest.raises(EmptyPoolError):
        engine.begin([])

    assert engine.state is SpinState.IDLE
    assert engine.current is None


def test_single_registrant_always_wins(clock: FakeClock) -> None:
    pool = _pool("solo")
    engine = SelectionEngine(rng=random.Random(), clock=clock, sleep=clock.sleep)

    for _ in range(100):
        spin = engine.begin(pool)
        result = engine.settle(spin)
        assert result.winner.display_name == "solo"
        assert result.winner_index == 0


def test_spin_uses_pool_snapshot(clock: FakeClock) -> None:
    pool = _pool("A", "B", "C", "D")
    engine = make_engine(clock)

    spin = engine.begin(pool)
    expected = spin.winner
    pool.pop(0)
    pool.pop(0)

    result = engine.settle(spin)

    assert result.pool_size == 4
    assert result.winner == expected


def test_settled_winner_is_reproducible(clock: FakeClock) -> None:
    pool = _pool("A", "B", "C", "D", "E")
    engine = make_engine(clock, seed=42)

    spin = engine.begin(pool)
    result = engine.settle(spin)

    assert engine.state is SpinState.SETTLED
    assert result.final_angle == spin.final_angle
    assert result.winner == pool[winner_index(result.final_angle, len(pool))]
    assert spin.winner == result.winner


def test_run_animates_until_duration(clock: FakeClock) -> None:
    pool = _pool("A", "B", "C")
    engine = make_engine(clock, duration_ms=3000, frame_interval_ms=50)
    frames: list[float] = []

    result = asyncio.run(engine.run(pool, on_frame=frames.append))

    assert engine.state is SpinState.SETTLED
    assert sum(clock.sleeps) == pytest.approx(3.0)
    assert frames[0] == 0.0
    assert frames[-1] == result.total_rotation
    assert all(b >= a for a, b in zip(frames, frames[1:], strict=False))
    assert 1800 <= result.total_rotation <= 2880


def test_new_selection_cancels_in_flight_task(clock: FakeClock) -> None:
    pool = _pool("A", "B")
    engine = make_engine(clock)

    async def scenario():  # type: ignore[no-untyped-def]
        first = engine.start(pool)
        await asyncio.sleep(0)
        second = engine.start(pool)
        result = await second
        return first, second, result

    first, second, result = asyncio.run(scenario())

    assert first.cancelled()
    assert result.spin_id == engine.current.id
    assert engine.state is SpinState.SETTLED


def test_superseded_run_raises_spin_cancelled(clock: FakeClock) -> None:
    pool = _pool("A", "B", "C")
    engine = make_engine(clock)

    async def scenario():  # type: ignore[no-untyped-def]
        first = asyncio.create_task(engine.run(pool))
        await asyncio.sleep(0)
        second = await engine.run(pool)
        with pytest.raises(SpinCancelledError):
            await first
        return second

    result = asyncio.run(scenario())

    assert result.pool_size == 3


def test_settling_stale_spin_fails(clock: FakeClock) -> None:
    engine = make_engine(clock)
    old = engine.begin(_pool("A", "B"))
    engine.begin(_pool("A", "B"))

    with pytest.raises(SpinCancelledError):
        engine.settle(old)

    assert engine.state is SpinState.SPINNING


def test_cancel_returns_to_idle(clock: FakeClock) -> None:
    engine = make_engine(clock)
    spin = engine.begin(_pool("A"))

    engine.cancel()

    assert engine.state is SpinState.IDLE
    with pytest.raises(SpinCancelledError):
        engine.settle(spin)


def test_cancelled_caller_returns_engine_to_idle(clock: FakeClock) -> None:
    engine = make_engine(clock)

    async def scenario() -> None:
        runner = asyncio.create_task(engine.run(_pool("A", "B")))
        await asyncio.sleep(0)
        runner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await runner

    asyncio.run(scenario())

    assert engine.state is SpinState.IDLE
    assert engine.current is None
