"""Shared test fixtures."""

import asyncio
import random
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from functools import partial

import pytest

from zap_wheel.adapters.payment_gateway import (
    BalanceResult,
    GatewayStatus,
    PaymentGateway,
    SendResult,
)
from zap_wheel.config import Settings
from zap_wheel.containers import AppContainer
from zap_wheel.services.selection import SelectionEngine
from zap_wheel.services.sessions import SessionService
from zap_wheel.services.store import EntityStore


@dataclass
class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    now: float = 1000.0
    sleeps: list[float] = field(default_factory=list)

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@dataclass
class SteppingWallClock:
    """Wall clock that ticks one second per reading."""

    current: datetime = datetime(2024, 5, 1, 18, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@dataclass
class FakePaymentGateway(PaymentGateway):
    """Gateway that records payouts and returns a configured result."""

    success: bool = True
    simulated: bool = False
    balance: int = 5000
    sent: list[tuple[str, int, str]] = field(default_factory=list)

    async def send(
        self, payout_address: str, amount: int, description: str
    ) -> SendResult:
        self.sent.append((payout_address, amount, description))
        if not self.success:
            return SendResult(
                success=False,
                amount=amount,
                recipient=payout_address,
                description=description,
                error="insufficient funds",
            )
        return SendResult(
            success=True,
            amount=amount,
            recipient=payout_address,
            simulated=self.simulated,
            transaction_id=None if self.simulated else f"tx-{len(self.sent)}",
            description=description,
            fee=0 if self.simulated else 1,
        )

    async def get_balance(self) -> BalanceResult:
        return BalanceResult(amount=self.balance, simulated=self.simulated)

    def describe(self) -> GatewayStatus:
        return GatewayStatus(
            simulated=self.simulated,
            api_url="https://api.speed.test",
            has_api_key=True,
        )

    async def close(self) -> None:
        return None


class ExplodingPaymentGateway(FakePaymentGateway):
    """Gateway whose send raises instead of reporting a failure."""

    async def send(
        self, payout_address: str, amount: int, description: str
    ) -> SendResult:
        raise ConnectionError("network unreachable")


def make_engine(clock: FakeClock, seed: int = 7, **kwargs: float) -> SelectionEngine:
    return SelectionEngine(
        rng=random.Random(seed), clock=clock, sleep=clock.sleep, **kwargs
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        speed_api_key=None,
        public_base_url="https://wheel.example",
        spin_duration_ms=5,
        spin_frame_interval_ms=1,
    )


@pytest.fixture
def store() -> EntityStore:
    return EntityStore(clock=SteppingWallClock())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def session_service(
    store: EntityStore, payment_gateway: FakePaymentGateway, clock: FakeClock
) -> SessionService:
    return SessionService(
        store=store,
        payment_gateway=payment_gateway,
        engine_factory=partial(make_engine, clock),
        base_url="https://wheel.example",
    )


@pytest.fixture
def container(
    settings: Settings,
    store: EntityStore,
    payment_gateway: FakePaymentGateway,
) -> AppContainer:
    session_service = SessionService(
        store=store,
        payment_gateway=payment_gateway,
        engine_factory=partial(
            SelectionEngine,
            duration_ms=settings.spin_duration_ms,
            frame_interval_ms=settings.spin_frame_interval_ms,
        ),
        base_url=settings.public_base_url,
        default_amount=settings.default_payout_amount,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        store=store,
        payment_gateway=payment_gateway,
        session_service=session_service,
        close_resources=close_resources,
    )
