"""Tests for container wiring and configuration."""

import asyncio

from zap_wheel.adapters.payment_gateway import (
    HttpxPaymentGateway,
    SimulatedPaymentGateway,
)
from zap_wheel.config import Settings, is_payment_simulated
from zap_wheel.containers import build_container


def test_build_container_creates_services(settings: Settings) -> None:
    container = build_container(settings)

    assert container.session_service.store is container.store
    assert isinstance(container.payment_gateway, SimulatedPaymentGateway)
    engine = container.session_service.engine_for("stream-1")
    assert engine.duration_ms == settings.spin_duration_ms
    asyncio.run(container.close_resources())


def test_build_container_uses_live_gateway_with_key() -> None:
    settings = Settings(speed_api_key="live-key", environment="production")

    container = build_container(settings)

    assert isinstance(container.payment_gateway, HttpxPaymentGateway)
    assert container.payment_gateway.describe().has_api_key is True
    asyncio.run(container.close_resources())


def test_containers_do_not_share_state(settings: Settings) -> None:
    first = build_container(settings)
    second = build_container(settings)

    first.store.create_session("stream-1", "Friday Night")

    assert second.store.list_sessions() == []


def test_is_payment_simulated() -> None:
    assert is_payment_simulated(Settings(speed_api_key=None)) is True
    assert is_payment_simulated(Settings(speed_api_key="  ")) is True
    assert (
        is_payment_simulated(Settings(speed_api_key="k", environment="development"))
        is True
    )
    assert (
        is_payment_simulated(Settings(speed_api_key="k", environment="production"))
        is False
    )
