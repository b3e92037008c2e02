from __future__ import annotations


class AssetVerseError(Exception):
    """Business-rule failure surfaced verbatim to the caller."""

    status_code = 400
    code = "Error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return cls.code

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class NotFoundError(AssetVerseError):
    status_code = 404
    code = "NotFound"


class ForbiddenError(AssetVerseError):
    status_code = 403
    code = "Forbidden"


class AlreadyProcessedError(AssetVerseError):
    status_code = 409
    code = "AlreadyProcessed"


class InsufficientCreditError(AssetVerseError):
    status_code = 403
    code = "InsufficientCredit"

    @classmethod
    def default_message(cls) -> str:
        return "No credit left"


class InsufficientStockError(AssetVerseError):
    code = "InsufficientStock"

    @classmethod
    def default_message(cls) -> str:
        return "Not enough stock"


class InvalidStateError(AssetVerseError):
    code = "InvalidState"


class NotReturnableError(AssetVerseError):
    code = "NotReturnable"

    @classmethod
    def default_message(cls) -> str:
        return "Asset is not returnable"


class InvalidInputError(AssetVerseError):
    code = "InvalidInput"


class PaymentNotCompletedError(AssetVerseError):
    code = "PaymentNotCompleted"

    @classmethod
    def default_message(cls) -> str:
        return "Payment not completed"


class InventoryInvariantError(RuntimeError):
    """A ledger adjustment would leave availableQuantity outside [0, total]."""
