"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial

from zap_wheel.adapters.payment_gateway import (
    HttpxPaymentGateway,
    PaymentGateway,
    SimulatedPaymentGateway,
)
from zap_wheel.config import Settings, is_payment_simulated
from zap_wheel.services.selection import SelectionEngine
from zap_wheel.services.sessions import SessionService
from zap_wheel.services.store import EntityStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: EntityStore
    payment_gateway: PaymentGateway
    session_service: SessionService
    close_resources: Callable[[], Awaitable[None]]


def build_payment_gateway(
    settings: Settings,
) -> HttpxPaymentGateway | SimulatedPaymentGateway:
    """Pick the live or simulated gateway for the configured environment."""
    if is_payment_simulated(settings):
        return SimulatedPaymentGateway(
            api_url=settings.speed_api_url,
            has_api_key=bool(settings.speed_api_key),
        )
    return HttpxPaymentGateway.create(
        api_key=settings.speed_api_key or "",
        api_url=settings.speed_api_url,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    store = EntityStore()
    payment_gateway = build_payment_gateway(resolved_settings)
    engine_factory = partial(
        SelectionEngine,
        duration_ms=resolved_settings.spin_duration_ms,
        min_turns=resolved_settings.spin_min_turns,
        max_turns=resolved_settings.spin_max_turns,
        frame_interval_ms=resolved_settings.spin_frame_interval_ms,
    )
    session_service = SessionService(
        store=store,
        payment_gateway=payment_gateway,
        engine_factory=engine_factory,
        base_url=resolved_settings.public_base_url,
        default_amount=resolved_settings.default_payout_amount,
        fallback_name=resolved_settings.fallback_session_name,
    )

    async def close_resources() -> None:
        await payment_gateway.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        payment_gateway=payment_gateway,
        session_service=session_service,
        close_resources=close_resources,
    )
