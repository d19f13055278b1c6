"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain errors without importing HTTP concepts; the
handlers registered here translate each error *kind* into one HTTP status
and a consistent JSON body: {"detail": "...", "error_type": "..."}.

Exception hierarchy:
    LedgerError (base)
    ├── NotFoundError          404  absent, or owned by another workspace
    │   ├── WorkspaceNotFoundError
    │   ├── AccountNotFoundError
    │   ├── TransactionNotFoundError
    │   ├── TransactionsNotFoundError
    │   └── TemplateNotFoundError
    ├── InvalidStateError      409  wrong credit-card lifecycle state
    │   ├── InvalidCCStateTransitionError
    │   └── TransactionNotBilledError
    ├── InvalidInputError      422  request rejected by a business rule
    │   ├── NotCCTransactionError
    │   ├── TransactionNotSettleableError
    │   ├── InvalidTargetAccountError
    │   ├── InvalidSourceAccountError
    │   ├── EmptySettlementError
    │   ├── SameAccountTransferError
    │   ├── InvalidAmountError
    │   ├── InvalidDateRangeError
    │   ├── InvalidFrequencyError
    │   └── TransferPairImmutableError
    └── ConflictError          409
        └── DuplicateProjectionError

A resource that exists in another workspace is reported exactly like one
that does not exist at all, so one tenant cannot discover another tenant's IDs.
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception and kinds
# ---------------------------------------------------------------------------

class LedgerError(Exception):
    """Base exception for all ledger domain errors."""

    status_code = 400
    error_type = "ledger_error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


class NotFoundError(LedgerError):
    status_code = 404
    error_type = "not_found"


class InvalidStateError(LedgerError):
    status_code = 409
    error_type = "invalid_state"


class InvalidInputError(LedgerError):
    status_code = 422
    error_type = "invalid_input"


class ConflictError(LedgerError):
    status_code = 409
    error_type = "conflict"


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------

class WorkspaceNotFoundError(NotFoundError):
    error_type = "workspace_not_found"

    def __init__(self, workspace_id: uuid.UUID):
        self.workspace_id = workspace_id
        super().__init__(f"Workspace {workspace_id} not found")


class AccountNotFoundError(NotFoundError):
    error_type = "account_not_found"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class TransactionNotFoundError(NotFoundError):
    error_type = "transaction_not_found"

    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class TransactionsNotFoundError(NotFoundError):
    """
    Raised when some IDs of a batch do not resolve.

    Attributes:
        missing_ids: The IDs that were not found in the workspace.
    """

    error_type = "transactions_not_found"

    def __init__(self, missing_ids: list[uuid.UUID]):
        self.missing_ids = missing_ids
        super().__init__(
            f"{len(missing_ids)} transaction(s) not found: "
            + ", ".join(str(i) for i in missing_ids)
        )


class TemplateNotFoundError(NotFoundError):
    error_type = "template_not_found"

    def __init__(self, template_id: uuid.UUID):
        self.template_id = template_id
        super().__init__(f"Recurring template {template_id} not found")


# ---------------------------------------------------------------------------
# Invalid state
# ---------------------------------------------------------------------------

class InvalidCCStateTransitionError(InvalidStateError):
    """Raised when toggling billed state on a settled transaction."""

    error_type = "invalid_cc_state_transition"

    def __init__(self, transaction_id: uuid.UUID, state: str):
        self.transaction_id = transaction_id
        self.state = state
        super().__init__(
            f"Transaction {transaction_id} is {state} and cannot change billed state"
        )


class TransactionNotBilledError(InvalidStateError):
    error_type = "transaction_not_billed"

    def __init__(self, transaction_id: uuid.UUID | None = None):
        self.transaction_id = transaction_id
        if transaction_id is None:
            super().__init__("One or more transactions are no longer billed")
        else:
            super().__init__(f"Transaction {transaction_id} is not billed")


# ---------------------------------------------------------------------------
# Invalid input
# ---------------------------------------------------------------------------

class NotCCTransactionError(InvalidInputError):
    error_type = "not_cc_transaction"

    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} is not a credit card transaction")


class TransactionNotSettleableError(InvalidInputError):
    """Raised for billed rows that are not deferred or sit on another card."""

    error_type = "transaction_not_settleable"

    def __init__(self, transaction_id: uuid.UUID, reason: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} cannot be settled: {reason}")


class InvalidTargetAccountError(InvalidInputError):
    error_type = "invalid_target_account"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} is not a credit card account")


class InvalidSourceAccountError(InvalidInputError):
    error_type = "invalid_source_account"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} is a credit card and cannot fund a settlement")


class EmptySettlementError(InvalidInputError):
    error_type = "empty_settlement"

    def __init__(self):
        super().__init__("At least one transaction is required to settle")


class SameAccountTransferError(InvalidInputError):
    error_type = "same_account_transfer"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__("Cannot transfer to the same account")


class InvalidAmountError(InvalidInputError):
    error_type = "invalid_amount"

    def __init__(self, amount_cents: int):
        self.amount_cents = amount_cents
        super().__init__(f"Amount must be positive, got {amount_cents} cents")


class InvalidDateRangeError(InvalidInputError):
    error_type = "invalid_date_range"

    def __init__(self, detail: str = "End date cannot be before start date"):
        super().__init__(detail)


class InvalidFrequencyError(InvalidInputError):
    error_type = "invalid_frequency"

    def __init__(self, frequency: str):
        self.frequency = frequency
        super().__init__(f"Unsupported frequency '{frequency}', only 'monthly' is supported")


class TransferPairImmutableError(InvalidInputError):
    error_type = "transfer_pair_immutable"

    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__(
            f"Transaction {transaction_id} belongs to a transfer; amount and date cannot change"
        )


# ---------------------------------------------------------------------------
# Conflict
# ---------------------------------------------------------------------------

class DuplicateProjectionError(ConflictError):
    """Raised by the storage layer when a month was generated concurrently."""

    error_type = "duplicate_projection"

    def __init__(self, template_id: uuid.UUID, year: int, month: int):
        self.template_id = template_id
        self.year = year
        self.month = month
        super().__init__(
            f"Template {template_id} already has an instance for {year}-{month:02d}"
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    One handler serves the whole hierarchy: the status code comes from the
    error kind, the error_type from the concrete class. Batch lookups also
    report which IDs were missing.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        content = {"detail": exc.detail, "error_type": exc.error_type}
        if isinstance(exc, TransactionsNotFoundError):
            content["missing_ids"] = [str(i) for i in exc.missing_ids]
        return JSONResponse(status_code=exc.status_code, content=content)
