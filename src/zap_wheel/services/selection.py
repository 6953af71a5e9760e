"""Selection engine mapping a randomized wheel spin to a single winner.

The wheel is a circle split into N equal segments in registration order,
segment 0 starting at 12 o'clock. The pointer is fixed at 12 o'clock while the
wheel turns forward, so a wheel that has turned by `a` degrees shows the
segment that started at `360 - a` under the pointer:

    winner = floor(((360 - a mod 360) mod 360) / (360 / N)) mod N

Worked table for N = 4 (90 degree segments, pool [A, B, C, D]):

    final angle   0    45   90   180   270   271   359
    winner        A    D    D    C     B     A     A
"""

import asyncio
import logging
import random
import threading
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from uuid import uuid4

from zap_wheel.domain.errors import EmptyPoolError, SpinCancelledError
from zap_wheel.domain.sessions import Registrant

logger = logging.getLogger(__name__)

FULL_TURN = 360.0
DEFAULT_MIN_TURNS = 5
DEFAULT_MAX_TURNS = 8
DEFAULT_DURATION_MS = 3000
DEFAULT_FRAME_INTERVAL_MS = 50

FrameCallback = Callable[[float], None]


class SpinState(StrEnum):
    """Lifecycle of the engine's current selection."""

    IDLE = "idle"
    SPINNING = "spinning"
    SETTLED = "settled"


def draw_rotation(
    rng: random.Random,
    min_turns: float = DEFAULT_MIN_TURNS,
    max_turns: float = DEFAULT_MAX_TURNS,
) -> float:
    """Draw a total rotation in degrees, uniform over [min_turns, max_turns]."""
    if min_turns <= 0 or max_turns < min_turns:
        raise ValueError(f"Invalid turn range: {min_turns}..{max_turns}")
    return rng.uniform(min_turns * FULL_TURN, max_turns * FULL_TURN)


def ease_out_angle(
    total_rotation: float, duration_ms: float, elapsed_ms: float
) -> float:
    """Return the wheel angle at `elapsed_ms` on a cubic ease-out curve."""
    if duration_ms <= 0:
        raise ValueError("duration_ms must be positive")
    if elapsed_ms <= 0:
        return 0.0
    if elapsed_ms >= duration_ms:
        return total_rotation
    progress = elapsed_ms / duration_ms
    return total_rotation * (1 - (1 - progress) ** 3)


def normalize_angle(angle: float) -> float:
    """Fold an angle into [0, 360)."""
    return angle % FULL_TURN


def winner_index(final_angle: float, pool_size: int) -> int:
    """Return the index of the segment under the fixed pointer."""
    if pool_size <= 0:
        raise EmptyPoolError()
    segment = FULL_TURN / pool_size
    offset = (FULL_TURN - normalize_angle(final_angle)) % FULL_TURN
    return int(offset // segment) % pool_size


@dataclass(frozen=True)
class SelectionResult:
    """The settled outcome of one spin."""

    spin_id: str
    winner: Registrant
    winner_index: int
    pool_size: int
    total_rotation: float
    final_angle: float


@dataclass(frozen=True)
class Spin:
    """An in-flight selection over a snapshot of the pool."""

    id: str
    pool: tuple[Registrant, ...]
    total_rotation: float
    duration_ms: float
    started_at: float

    def angle_at(self, elapsed_ms: float) -> float:
        return ease_out_angle(self.total_rotation, self.duration_ms, elapsed_ms)

    @property
    def final_angle(self) -> float:
        """Settled orientation in [0, 360)."""
        return normalize_angle(self.angle_at(self.duration_ms))

    @property
    def winner_index(self) -> int:
        return winner_index(self.final_angle, len(self.pool))

    @property
    def winner(self) -> Registrant:
        return self.pool[self.winner_index]

    def result(self) -> SelectionResult:
        index = self.winner_index
        return SelectionResult(
            spin_id=self.id,
            winner=self.pool[index],
            winner_index=index,
            pool_size=len(self.pool),
            total_rotation=self.total_rotation,
            final_angle=self.final_angle,
        )


class SelectionEngine:
    """Runs one selection at a time: idle -> spinning -> settled.

    Starting a new selection while one is spinning supersedes it; the old
    animation task is cancelled and can no longer settle.
    """

    def __init__(  # noqa: PLR0913
        self,
        duration_ms: float = DEFAULT_DURATION_MS,
        min_turns: float = DEFAULT_MIN_TURNS,
        max_turns: float = DEFAULT_MAX_TURNS,
        frame_interval_ms: float = DEFAULT_FRAME_INTERVAL_MS,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if duration_ms <= 0:
            raise ValueError("duration_ms must be positive")
        self.duration_ms = duration_ms
        self.min_turns = min_turns
        self.max_turns = max_turns
        self.frame_interval_ms = frame_interval_ms
        self._rng = rng or random.SystemRandom()
        self._clock = clock
        self._sleep = sleep
        self._state = SpinState.IDLE
        self._current: Spin | None = None
        self._task: asyncio.Task[SelectionResult] | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> SpinState:
        return self._state

    @property
    def current(self) -> Spin | None:
        return self._current

    def begin(self, pool: Sequence[Registrant]) -> Spin:
        """Snapshot the pool and enter the spinning state."""
        snapshot = tuple(pool)
        if not snapshot:
            raise EmptyPoolError()
        spin = Spin(
            id=str(uuid4()),
            pool=snapshot,
            total_rotation=draw_rotation(self._rng, self.min_turns, self.max_turns),
            duration_ms=self.duration_ms,
            started_at=self._clock(),
        )
        with self._lock:
            if self._state is SpinState.SPINNING and self._current is not None:
                logger.info("Spin %s superseded by %s", self._current.id, spin.id)
            self._current = spin
            self._state = SpinState.SPINNING
        return spin

    def settle(self, spin: Spin) -> SelectionResult:
        """Finish `spin` and return its winner."""
        with self._lock:
            if self._current is not spin or self._state is not SpinState.SPINNING:
                raise SpinCancelledError(f"Spin {spin.id} is no longer in flight")
            self._state = SpinState.SETTLED
        result = spin.result()
        logger.info(
            "Spin %s settled at %.2f degrees: index %d of %d (%s)",
            spin.id,
            result.final_angle,
            result.winner_index,
            result.pool_size,
            result.winner.id,
        )
        return result

    def start(
        self, pool: Sequence[Registrant], on_frame: FrameCallback | None = None
    ) -> "asyncio.Task[SelectionResult]":
        """Begin a selection and schedule its animation on the running loop."""
        loop = asyncio.get_running_loop()
        spin = self.begin(pool)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = loop.create_task(self._animate(spin, on_frame))
        return self._task

    async def run(
        self, pool: Sequence[Registrant], on_frame: FrameCallback | None = None
    ) -> SelectionResult:
        """Run a selection to completion.

        Raises SpinCancelledError when a newer selection supersedes this one.
        """
        task = self.start(pool, on_frame)
        spin = self._current
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                self._abandon(spin)
                raise
            raise SpinCancelledError("Spin superseded by a newer selection") from None

    def cancel(self) -> None:
        """Abandon the in-flight selection, returning to idle."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        with self._lock:
            if self._state is SpinState.SPINNING:
                self._current = None
                self._state = SpinState.IDLE

    def _abandon(self, spin: Spin | None) -> None:
        with self._lock:
            if self._current is spin and self._state is SpinState.SPINNING:
                self._current = None
                self._state = SpinState.IDLE

    async def _animate(
        self, spin: Spin, on_frame: FrameCallback | None
    ) -> SelectionResult:
        while True:
            elapsed_ms = (self._clock() - spin.started_at) * 1000
            remaining_ms = spin.duration_ms - elapsed_ms
            if remaining_ms <= 0:
                break
            if on_frame is not None:
                on_frame(spin.angle_at(elapsed_ms))
            step_ms = remaining_ms
            if self.frame_interval_ms > 0:
                step_ms = min(self.frame_interval_ms, remaining_ms)
            await self._sleep(step_ms / 1000)
        if on_frame is not None:
            on_frame(spin.total_rotation)
        return self.settle(spin)
