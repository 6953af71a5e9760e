"""Payment gateway adapters for sending winner payouts."""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

SIMULATED_BALANCE = 1_000_000


@dataclass(frozen=True)
class SendResult:
    """Outcome of a single payout attempt."""

    success: bool
    amount: int
    recipient: str
    simulated: bool = False
    transaction_id: str | None = None
    description: str | None = None
    fee: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class BalanceResult:
    """Wallet balance as reported by the gateway."""

    amount: int
    simulated: bool = False
    error: str | None = None


@dataclass(frozen=True)
class GatewayStatus:
    """Static description of how the gateway is configured."""

    simulated: bool
    api_url: str
    has_api_key: bool


class PaymentGateway(Protocol):
    """Interface for the external payout network."""

    async def send(
        self, payout_address: str, amount: int, description: str
    ) -> SendResult:
        """Attempt to transfer `amount` to `payout_address`."""

    async def get_balance(self) -> BalanceResult:
        """Return the wallet balance."""

    def describe(self) -> GatewayStatus:
        """Return the gateway configuration summary."""


@dataclass
class HttpxPaymentGateway(PaymentGateway):
    """Speed API gateway implemented with httpx.

    Network and HTTP errors are reported through the result objects rather
    than raised, so a failed payout still yields a recorded outcome.
    """

    api_key: str
    api_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, api_key: str, api_url: str) -> "HttpxPaymentGateway":
        """Create a gateway with a managed httpx session."""
        return cls(api_key=api_key, api_url=api_url, http_client=httpx.AsyncClient())

    async def send(
        self, payout_address: str, amount: int, description: str
    ) -> SendResult:
        """Send a payment using the /v1/payments/send endpoint."""
        url = f"{self.api_url}/v1/payments/send"
        try:
            response = await self.http_client.post(
                url,
                json={
                    "recipient": payout_address,
                    "amount": amount,
                    "description": description,
                },
                headers=self._headers(),
                timeout=15,
            )
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                data = {}
        except (httpx.HTTPError, ValueError) as exc:
            logger.exception("Payment to %s failed", payout_address)
            return SendResult(
                success=False,
                amount=amount,
                recipient=payout_address,
                description=description,
                error=str(exc) or type(exc).__name__,
            )
        transaction_id = data.get("id")
        return SendResult(
            success=True,
            amount=amount,
            recipient=payout_address,
            simulated=False,
            transaction_id=str(transaction_id) if transaction_id is not None else None,
            description=description,
            fee=_parse_fee(data.get("fee")),
        )

    async def get_balance(self) -> BalanceResult:
        """Fetch the wallet balance."""
        url = f"{self.api_url}/v1/wallet/balance"
        try:
            response = await self.http_client.get(
                url, headers=self._headers(), timeout=15
            )
            response.raise_for_status()
            data = response.json()
            return BalanceResult(amount=int(data["balance"]))
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
            logger.exception("Balance lookup failed")
            return BalanceResult(amount=0, error=str(exc) or type(exc).__name__)

    def describe(self) -> GatewayStatus:
        return GatewayStatus(
            simulated=False, api_url=self.api_url, has_api_key=bool(self.api_key)
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}


def _parse_fee(raw: object) -> int | None:
    if raw is None:
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Unparseable payment fee %r", raw)
        return None


@dataclass
class SimulatedPaymentGateway(PaymentGateway):
    """Gateway that pretends every payout succeeds."""

    api_url: str = "https://api.speed.app"
    has_api_key: bool = False
    balance: int = SIMULATED_BALANCE

    async def send(
        self, payout_address: str, amount: int, description: str
    ) -> SendResult:
        logger.info(
            "Simulated payout: %d to %s - %s", amount, payout_address, description
        )
        return SendResult(
            success=True,
            amount=amount,
            recipient=payout_address,
            simulated=True,
            description=description,
        )

    async def get_balance(self) -> BalanceResult:
        return BalanceResult(amount=self.balance, simulated=True)

    def describe(self) -> GatewayStatus:
        return GatewayStatus(
            simulated=True, api_url=self.api_url, has_api_key=self.has_api_key
        )

    async def close(self) -> None:
        return None
