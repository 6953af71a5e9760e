"""Session workflows: registration, wheel spins and winner payouts."""

import logging
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from uuid import uuid4

from zap_wheel.adapters.payment_gateway import PaymentGateway, SendResult
from zap_wheel.domain.errors import InvalidAmountError, InvalidInputError, NotFoundError
from zap_wheel.domain.sessions import (
    PayoutRecord,
    PayoutStatus,
    Registrant,
    Session,
    SessionStats,
)
from zap_wheel.services.selection import (
    FrameCallback,
    SelectionEngine,
    SelectionResult,
)
from zap_wheel.services.store import DEFAULT_FALLBACK_NAME, EntityStore

logger = logging.getLogger(__name__)

DEFAULT_PAYOUT_AMOUNT = 1000


@dataclass(frozen=True)
class SessionLinks:
    """Shareable URLs for a session."""

    check_in_url: str
    admin_url: str
    wheel_url: str


@dataclass(frozen=True)
class SessionDescriptor:
    """A newly created session and its links."""

    session: Session
    links: SessionLinks


@dataclass(frozen=True)
class SessionView:
    """A session with its current pool and aggregates."""

    session: Session
    participants: list[Registrant]
    stats: SessionStats


@dataclass(frozen=True)
class SpinOutcome:
    """A selected winner together with the payout attempt."""

    session_id: str
    winner: Registrant
    amount: int
    payout: PayoutRecord
    send_result: SendResult
    selection: SelectionResult | None = None

    @property
    def message(self) -> str:
        if self.payout.status is PayoutStatus.SIMULATED:
            return "Winner selected and payout simulated!"
        if self.payout.status is PayoutStatus.COMPLETED:
            return "Winner selected and payout sent!"
        return "Winner selected but payout failed"


def payout_status(result: SendResult) -> PayoutStatus:
    """Map a gateway result onto the payout status enum."""
    if not result.success:
        return PayoutStatus.FAILED
    if result.simulated:
        return PayoutStatus.SIMULATED
    return PayoutStatus.COMPLETED


@dataclass
class SessionService:
    """Coordinates the entity store, selection engines and payment gateway."""

    store: EntityStore
    payment_gateway: PaymentGateway
    engine_factory: Callable[[], SelectionEngine] = SelectionEngine
    base_url: str | None = None
    default_amount: int = DEFAULT_PAYOUT_AMOUNT
    fallback_name: str = DEFAULT_FALLBACK_NAME
    _engines: dict[str, SelectionEngine] = field(
        default_factory=dict, init=False, repr=False
    )
    _engines_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    def create_session(
        self, name: str, base_url: str | None = None
    ) -> SessionDescriptor:
        """Open a new session under a fresh id."""
        if not isinstance(name, str) or not name.strip():
            raise InvalidInputError("name must not be empty")
        session = self.store.create_session(str(uuid4()), name.strip())
        return SessionDescriptor(
            session=session, links=self.links_for(session.id, base_url)
        )

    def links_for(self, session_id: str, base_url: str | None = None) -> SessionLinks:
        root = (base_url or self.base_url or "").rstrip("/")
        return SessionLinks(
            check_in_url=f"{root}/checkin/{session_id}",
            admin_url=f"{root}/admin/{session_id}",
            wheel_url=f"{root}/wheel/{session_id}",
        )

    def list_active_sessions(self) -> list[Session]:
        return self.store.list_sessions(active_only=True)

    def get_session_view(self, session_id: str) -> SessionView:
        """Resolve a session by id, recovering it if it was never created here."""
        session = self.store.ensure_session(session_id, self.fallback_name)
        return SessionView(
            session=session,
            participants=self.store.list_participants(session_id),
            stats=self.store.session_stats(session_id),
        )

    def list_participants(self, session_id: str) -> list[Registrant]:
        self.store.ensure_session(session_id, self.fallback_name)
        return self.store.list_participants(session_id)

    def check_in(self, session_id: str, name: str, payout_address: str) -> Registrant:
        self.store.ensure_session(session_id, self.fallback_name)
        return self.store.register_participant(session_id, name, payout_address)

    def remove_participant(self, registrant_id: str) -> Registrant:
        return self.store.remove_participant(registrant_id)

    def end_session(self, session_id: str) -> Session:
        session = self.store.deactivate_session(session_id)
        with self._engines_lock:
            engine = self._engines.pop(session_id, None)
        if engine is not None:
            engine.cancel()
        return session

    def engine_for(self, session_id: str) -> SelectionEngine:
        """Return the session's wheel, creating it on first use."""
        with self._engines_lock:
            engine = self._engines.get(session_id)
            if engine is None:
                engine = self.engine_factory()
                self._engines[session_id] = engine
            return engine

    async def spin(
        self,
        session_id: str,
        amount: int | None = None,
        on_frame: FrameCallback | None = None,
    ) -> SpinOutcome:
        """Spin the session's wheel over the current pool and pay the winner."""
        resolved_amount = self._resolve_amount(amount)
        self.store.ensure_session(session_id, self.fallback_name)
        pool = self.store.list_participants(session_id)
        selection = await self.engine_for(session_id).run(pool, on_frame)
        return await self._pay(
            session_id, selection.winner, resolved_amount, selection=selection
        )

    async def award(
        self, session_id: str, registrant_id: str, amount: int | None = None
    ) -> SpinOutcome:
        """Pay a winner chosen by a client-side wheel."""
        resolved_amount = self._resolve_amount(amount)
        self.store.ensure_session(session_id, self.fallback_name)
        winner = self.store.get_participant(registrant_id)
        if winner.session_id != session_id:
            raise NotFoundError("participant", registrant_id)
        return await self._pay(session_id, winner, resolved_amount)

    def record_payout_outcome(
        self,
        session_id: str,
        registrant_id: str,
        amount: int,
        status: PayoutStatus | str,
    ) -> PayoutRecord:
        try:
            resolved_status = PayoutStatus(status)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown payout status: {status!r}") from exc
        return self.store.record_payout(
            session_id, registrant_id, amount, resolved_status
        )

    async def status(self) -> dict[str, object]:
        """Return gateway configuration, wallet balance and store counters."""
        balance = await self.payment_gateway.get_balance()
        return {
            **asdict(self.payment_gateway.describe()),
            "balance": balance.amount,
            "balance_error": balance.error,
            "store": asdict(self.store.store_status()),
        }

    async def _pay(
        self,
        session_id: str,
        winner: Registrant,
        amount: int,
        selection: SelectionResult | None = None,
    ) -> SpinOutcome:
        description = f"Stream wheel win - {winner.display_name}"
        try:
            send_result = await self.payment_gateway.send(
                winner.payout_address, amount, description
            )
        except Exception as exc:
            logger.exception("Payment gateway raised for %s", winner.id)
            send_result = SendResult(
                success=False,
                amount=amount,
                recipient=winner.payout_address,
                description=description,
                error=str(exc) or type(exc).__name__,
            )
        payout = self.store.record_payout(
            session_id, winner.id, amount, payout_status(send_result)
        )
        return SpinOutcome(
            session_id=session_id,
            winner=winner,
            amount=amount,
            payout=payout,
            send_result=send_result,
            selection=selection,
        )

    def _resolve_amount(self, amount: int | None) -> int:
        resolved = self.default_amount if amount is None else amount
        if isinstance(resolved, bool) or not isinstance(resolved, int) or resolved <= 0:
            raise InvalidAmountError(resolved)
        return resolved
