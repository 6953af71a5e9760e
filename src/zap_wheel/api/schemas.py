"""Pydantic request models and JSON serializers for the HTTP API."""

from pydantic import BaseModel, ConfigDict, Field

from zap_wheel.domain.sessions import (
    PayoutRecord,
    PayoutStatus,
    Registrant,
    Session,
    SessionStats,
)
from zap_wheel.services.sessions import SessionDescriptor, SpinOutcome


class CreateSessionRequest(BaseModel):
    """Payload for opening a session."""

    name: str


class CheckInRequest(BaseModel):
    """Payload for a viewer check-in."""

    model_config = ConfigDict(populate_by_name=True)

    username: str
    speed_address: str = Field(alias="speedAddress")


class SpinRequest(BaseModel):
    """Payload for a spin; `winner` skips the server-side wheel."""

    winner: str | None = None
    amount: int | None = None


class PayoutOutcomeRequest(BaseModel):
    """Payload for recording an externally settled payout."""

    model_config = ConfigDict(populate_by_name=True)

    participant_id: str = Field(alias="participantId")
    amount: int
    status: PayoutStatus


def session_json(session: Session) -> dict[str, object]:
    return {
        "id": session.id,
        "name": session.display_name,
        "created_at": session.created_at.isoformat(),
        "is_active": session.active,
    }


def participant_json(registrant: Registrant) -> dict[str, object]:
    return {
        "id": registrant.id,
        "stream_id": registrant.session_id,
        "name": registrant.display_name,
        "speed_address": registrant.payout_address,
        "checked_in_at": registrant.registered_at.isoformat(),
    }


def payout_json(record: PayoutRecord) -> dict[str, object]:
    return {
        "id": record.id,
        "stream_id": record.session_id,
        "participant_id": record.registrant_id,
        "amount": record.amount,
        "status": record.status.value,
        "sent_at": record.recorded_at.isoformat(),
    }


def stats_json(stats: SessionStats) -> dict[str, int]:
    return {
        "total_participants": stats.participant_count,
        "total_zaps": stats.payout_count,
        "total_amount_zapped": stats.total_amount,
        "successful_zaps": stats.completed_count,
        "failed_zaps": stats.failed_count,
    }


def descriptor_json(descriptor: SessionDescriptor) -> dict[str, object]:
    return {
        "streamId": descriptor.session.id,
        "name": descriptor.session.display_name,
        "checkInUrl": descriptor.links.check_in_url,
        "adminUrl": descriptor.links.admin_url,
        "wheelUrl": descriptor.links.wheel_url,
    }


def spin_outcome_json(outcome: SpinOutcome) -> dict[str, object]:
    result = outcome.send_result
    body: dict[str, object] = {
        "message": outcome.message,
        "winner": outcome.winner.display_name,
        "winnerId": outcome.winner.id,
        "amount": outcome.amount,
        "speedAddress": outcome.winner.payout_address,
        "payout": payout_json(outcome.payout),
        "zapResult": {
            "success": result.success,
            "simulated": result.simulated,
            "transactionId": result.transaction_id,
            "fee": result.fee,
            "error": result.error,
        },
    }
    if outcome.selection is not None:
        body["spin"] = {
            "id": outcome.selection.spin_id,
            "totalRotation": outcome.selection.total_rotation,
            "finalAngle": outcome.selection.final_angle,
            "winnerIndex": outcome.selection.winner_index,
            "poolSize": outcome.selection.pool_size,
        }
    return body
