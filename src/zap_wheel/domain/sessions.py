"""Domain models for broadcast sessions, registrants and payouts."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class PayoutStatus(StrEnum):
    """Outcome of the single payout attempt for a selection."""

    PENDING = "pending"
    SIMULATED = "simulated"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Session:
    """Represents one broadcast registration/selection window."""

    id: str
    display_name: str
    created_at: datetime
    active: bool = True


@dataclass(frozen=True)
class Registrant:
    """Represents a viewer entered into a session's selection pool."""

    id: str
    session_id: str
    display_name: str
    payout_address: str
    registered_at: datetime


@dataclass(frozen=True)
class PayoutRecord:
    """Represents one selection outcome and its payout attempt."""

    id: str
    session_id: str
    registrant_id: str
    amount: int
    status: PayoutStatus
    recorded_at: datetime


@dataclass(frozen=True)
class SessionStats:
    """Aggregates derived from the live collections for one session."""

    participant_count: int
    payout_count: int
    total_amount: int
    completed_count: int
    failed_count: int


@dataclass(frozen=True)
class StoreStatus:
    """Diagnostic snapshot of the entity store."""

    session_count: int
    participant_count: int
    payout_count: int
    uptime_seconds: float
