"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from zap_wheel.api.schemas import (
    CheckInRequest,
    CreateSessionRequest,
    PayoutOutcomeRequest,
    SpinRequest,
    descriptor_json,
    participant_json,
    payout_json,
    session_json,
    spin_outcome_json,
    stats_json,
)
from zap_wheel.app_logging import configure_logging
from zap_wheel.containers import AppContainer
from zap_wheel.domain.errors import (
    AlreadyExistsError,
    EmptyPoolError,
    InvalidInputError,
    NotFoundError,
    SpinCancelledError,
    ZapWheelError,
)

_ERROR_STATUS: dict[type[ZapWheelError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AlreadyExistsError: status.HTTP_409_CONFLICT,
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    EmptyPoolError: status.HTTP_409_CONFLICT,
    SpinCancelledError: status.HTTP_409_CONFLICT,
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        gateway = app.state.container.payment_gateway.describe()
        if gateway.simulated:
            logger.warning("Payment gateway running in SIMULATION mode")
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(ZapWheelError)
    async def zap_wheel_error_handler(
        request: Request, exc: ZapWheelError
    ) -> JSONResponse:
        status_code = _status_for(exc)
        logger.info(
            "%s %s -> %d: %s", request.method, request.url.path, status_code, exc
        )
        return JSONResponse(status_code=status_code, content={"error": str(exc)})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/api/streams")
    async def list_streams(request: Request) -> list[dict[str, object]]:
        """Return the active sessions."""
        state_container: AppContainer = request.app.state.container
        return [
            session_json(session)
            for session in state_container.session_service.list_active_sessions()
        ]

    @app.post("/api/streams")
    async def create_stream(
        payload: CreateSessionRequest, request: Request
    ) -> dict[str, object]:
        """Open a session and return its shareable links."""
        state_container: AppContainer = request.app.state.container
        base_url = state_container.settings.public_base_url or str(
            request.base_url
        )
        descriptor = state_container.session_service.create_session(
            payload.name, base_url=base_url
        )
        return descriptor_json(descriptor)

    @app.get("/api/streams/{stream_id}")
    async def get_stream(stream_id: str, request: Request) -> dict[str, object]:
        """Return a session with its pool and stats, recovering it if missing."""
        state_container: AppContainer = request.app.state.container
        view = state_container.session_service.get_session_view(stream_id)
        return {
            **session_json(view.session),
            "participants": [participant_json(p) for p in view.participants],
            "stats": stats_json(view.stats),
        }

    @app.delete("/api/streams/{stream_id}")
    async def end_stream(stream_id: str, request: Request) -> dict[str, str]:
        state_container: AppContainer = request.app.state.container
        state_container.session_service.end_session(stream_id)
        return {"message": "Stream ended successfully"}

    @app.post("/api/streams/{stream_id}/checkin")
    async def check_in(
        stream_id: str, payload: CheckInRequest, request: Request
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        participant = state_container.session_service.check_in(
            stream_id, payload.username, payload.speed_address
        )
        return {
            "message": "Successfully checked in!",
            "participant": participant_json(participant),
        }

    @app.get("/api/streams/{stream_id}/participants")
    async def list_participants(
        stream_id: str, request: Request
    ) -> list[dict[str, object]]:
        state_container: AppContainer = request.app.state.container
        participants = state_container.session_service.list_participants(stream_id)
        return [participant_json(p) for p in participants]

    @app.post("/api/streams/{stream_id}/spin")
    async def spin(
        stream_id: str, payload: SpinRequest, request: Request
    ) -> dict[str, object]:
        """Select a winner and pay them.

        When `winner` is given the client already ran the wheel and only the
        payout happens here.
        """
        state_container: AppContainer = request.app.state.container
        service = state_container.session_service
        if payload.winner:
            outcome = await service.award(stream_id, payload.winner, payload.amount)
        else:
            outcome = await service.spin(stream_id, payload.amount)
        return spin_outcome_json(outcome)

    @app.post("/api/streams/{stream_id}/payouts")
    async def record_payout(
        stream_id: str, payload: PayoutOutcomeRequest, request: Request
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        record = state_container.session_service.record_payout_outcome(
            stream_id, payload.participant_id, payload.amount, payload.status
        )
        return payout_json(record)

    @app.delete("/api/participants/{participant_id}")
    async def remove_participant(
        participant_id: str, request: Request
    ) -> dict[str, str]:
        state_container: AppContainer = request.app.state.container
        state_container.session_service.remove_participant(participant_id)
        return {"message": "Participant removed successfully"}

    @app.get("/api/status")
    async def service_status(request: Request) -> dict[str, object]:
        """Return gateway mode, wallet balance and store counters."""
        state_container: AppContainer = request.app.state.container
        return await state_container.session_service.status()

    return app


def _status_for(exc: ZapWheelError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in _ERROR_STATUS:
            return _ERROR_STATUS[error_type]
    return status.HTTP_400_BAD_REQUEST
