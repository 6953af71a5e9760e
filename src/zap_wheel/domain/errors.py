"""Error types raised by the session store and selection engine."""


class ZapWheelError(Exception):
    """Base class for recoverable, caller-facing errors."""


class NotFoundError(ZapWheelError):
    """A session, registrant or payout is absent where it is required."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class AlreadyExistsError(ZapWheelError):
    """An explicit create was attempted on an id that is already present."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} already exists: {identifier}")
        self.kind = kind
        self.identifier = identifier


class InvalidInputError(ZapWheelError):
    """Input failed validation at the store boundary."""


class InvalidAmountError(InvalidInputError):
    """A payout amount was not a positive integer."""

    def __init__(self, amount: object) -> None:
        super().__init__(f"Payout amount must be a positive integer, got {amount!r}")
        self.amount = amount


class EmptyPoolError(ZapWheelError):
    """A selection was requested against a pool with no registrants."""

    def __init__(self) -> None:
        super().__init__("Cannot start a selection with no registrants")


class SpinCancelledError(ZapWheelError):
    """A spin was superseded by a newer selection before it settled."""
