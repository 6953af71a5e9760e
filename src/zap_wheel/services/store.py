"""In-process entity store for sessions, registrants and payouts."""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from uuid import uuid4

from zap_wheel.domain.errors import (
    AlreadyExistsError,
    InvalidAmountError,
    InvalidInputError,
    NotFoundError,
)
from zap_wheel.domain.sessions import (
    PayoutRecord,
    PayoutStatus,
    Registrant,
    Session,
    SessionStats,
    StoreStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_NAME = "Live Stream"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _new_id() -> str:
    return str(uuid4())


class EntityStore:
    """Authoritative in-memory mapping from id to entity for all three kinds.

    Each collection has its own lock. Operations that touch more than one
    collection acquire them in the order sessions, registrants, payouts and
    never hold a lock while calling out of the store.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory
        self._started = time.monotonic()
        self._sessions: dict[str, Session] = {}
        self._registrants: dict[str, Registrant] = {}
        self._payouts: dict[str, PayoutRecord] = {}
        self._issued_ids: set[str] = set()
        self._registrant_sessions: dict[str, str] = {}
        self._session_lock = threading.Lock()
        self._registrant_lock = threading.Lock()
        self._payout_lock = threading.Lock()
        self._id_lock = threading.Lock()

    # Sessions

    def create_session(self, session_id: str, name: str) -> Session:
        """Insert a new active session, failing if the id is taken."""
        _require_text(session_id, "session id")
        with self._session_lock:
            if session_id in self._sessions:
                raise AlreadyExistsError("session", session_id)
            session = self._insert_session(session_id, name)
        logger.info("Created session %s (%s)", session_id, name)
        return session

    def ensure_session(
        self, session_id: str, fallback_name: str = DEFAULT_FALLBACK_NAME
    ) -> Session:
        """Return the session for `session_id`, creating it if it is missing."""
        with self._session_lock:
            session = self._sessions.get(session_id)
            if session is not None:
                return session
            session = self._insert_session(session_id, fallback_name)
        logger.info("Recovered missing session %s as %r", session_id, fallback_name)
        return session

    def get_session(self, session_id: str) -> Session:
        with self._session_lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("session", session_id)
        return session

    def list_sessions(self, active_only: bool = False) -> list[Session]:
        """Return a snapshot of sessions, optionally only the active ones."""
        with self._session_lock:
            sessions = list(self._sessions.values())
        if active_only:
            return [session for session in sessions if session.active]
        return sessions

    def deactivate_session(self, session_id: str) -> Session:
        """Close a session. Closing an already closed session is a no-op."""
        with self._session_lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFoundError("session", session_id)
            if session.active:
                session = replace(session, active=False)
                self._sessions[session_id] = session
                logger.info("Session %s ended", session_id)
        return session

    def _insert_session(self, session_id: str, name: str) -> Session:
        session = Session(
            id=session_id,
            display_name=name,
            created_at=self._clock(),
            active=True,
        )
        self._sessions[session_id] = session
        return session

    # Registrants

    def register_participant(
        self, session_id: str, name: str, payout_address: str
    ) -> Registrant:
        """Enter a viewer into a session's pool, recovering the session if needed."""
        _require_text(name, "name")
        _require_text(payout_address, "payout address")
        self.ensure_session(session_id)
        registrant = Registrant(
            id=self._issue_id(),
            session_id=session_id,
            display_name=name.strip(),
            payout_address=payout_address.strip(),
            registered_at=self._clock(),
        )
        with self._registrant_lock:
            self._registrants[registrant.id] = registrant
            self._registrant_sessions[registrant.id] = session_id
        logger.info("Registered %s in session %s", registrant.id, session_id)
        return registrant

    def remove_participant(self, registrant_id: str) -> Registrant:
        with self._registrant_lock:
            registrant = self._registrants.pop(registrant_id, None)
        if registrant is None:
            raise NotFoundError("participant", registrant_id)
        logger.info(
            "Removed %s from session %s", registrant_id, registrant.session_id
        )
        return registrant

    def get_participant(self, registrant_id: str) -> Registrant:
        with self._registrant_lock:
            registrant = self._registrants.get(registrant_id)
        if registrant is None:
            raise NotFoundError("participant", registrant_id)
        return registrant

    def list_participants(self, session_id: str) -> list[Registrant]:
        """Return the session's registrants in registration order."""
        with self._registrant_lock:
            return [
                registrant
                for registrant in self._registrants.values()
                if registrant.session_id == session_id
            ]

    # Payouts

    def record_payout(
        self,
        session_id: str,
        registrant_id: str,
        amount: int,
        status: PayoutStatus = PayoutStatus.PENDING,
    ) -> PayoutRecord:
        """Record one selection outcome.

        The registrant must have been registered in `session_id`, but does not
        have to be present any more: a payout record is history, so it
        survives the removal of the winner.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(amount)
        _require_text(registrant_id, "registrant id")
        with self._registrant_lock:
            registered_in = self._registrant_sessions.get(registrant_id)
        if registered_in != session_id:
            raise NotFoundError("participant", registrant_id)
        record = PayoutRecord(
            id=self._issue_id(),
            session_id=session_id,
            registrant_id=registrant_id,
            amount=amount,
            status=PayoutStatus(status),
            recorded_at=self._clock(),
        )
        with self._payout_lock:
            self._payouts[record.id] = record
        logger.info(
            "Recorded %s payout of %d for %s in session %s",
            record.status.value,
            amount,
            registrant_id,
            session_id,
        )
        return record

    def list_payouts(self, session_id: str) -> list[PayoutRecord]:
        with self._payout_lock:
            return [
                record
                for record in self._payouts.values()
                if record.session_id == session_id
            ]

    # Derived reads

    def session_stats(self, session_id: str) -> SessionStats:
        """Fold the live collections into per-session aggregates."""
        participants = self.list_participants(session_id)
        payouts = self.list_payouts(session_id)
        return SessionStats(
            participant_count=len(participants),
            payout_count=len(payouts),
            total_amount=sum(record.amount for record in payouts),
            completed_count=sum(
                1 for record in payouts if record.status is PayoutStatus.COMPLETED
            ),
            failed_count=sum(
                1 for record in payouts if record.status is PayoutStatus.FAILED
            ),
        )

    def store_status(self) -> StoreStatus:
        with self._session_lock, self._registrant_lock, self._payout_lock:
            return StoreStatus(
                session_count=len(self._sessions),
                participant_count=len(self._registrants),
                payout_count=len(self._payouts),
                uptime_seconds=time.monotonic() - self._started,
            )

    def _issue_id(self) -> str:
        with self._id_lock:
            new_id = self._id_factory()
            while new_id in self._issued_ids:
                new_id = self._id_factory()
            self._issued_ids.add(new_id)
        return new_id


def _require_text(value: str, field: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{field} must not be empty")
