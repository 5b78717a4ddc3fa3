"""
Typed ledger failures.

Every precondition the ledger rejects surfaces as one of these. They are
raised before any row is written, so a caught LedgerError always means the
ledger state is unchanged.
"""
from fastapi import status


class LedgerError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def name(self) -> str:
        return type(self).__name__


class Unauthorized(LedgerError):
    """Caller is not the owner or lacks the role the operation requires."""
    status_code = status.HTTP_403_FORBIDDEN


class NotActive(LedgerError):
    """Caller or target participant has been deactivated."""
    status_code = status.HTTP_403_FORBIDDEN


class AlreadyRegistered(LedgerError):
    status_code = status.HTTP_409_CONFLICT


class NotFound(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND


class ProductNotFound(NotFound):
    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} does not exist.")
        self.product_id = product_id


class ParticipantNotFound(NotFound):
    def __init__(self, address: str):
        super().__init__(f"Participant {address} is not registered.")
        self.address = address


class IndexOutOfRange(NotFound):
    def __init__(self, product_id: int, index: int, count: int):
        super().__init__(
            f"Checkpoint index {index} out of range for product {product_id} "
            f"({count} checkpoints).")
        self.index = index


class InvalidTransition(LedgerError):
    """Requested stage does not move the product strictly forward."""
    status_code = status.HTTP_409_CONFLICT


class OutOfRange(LedgerError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
