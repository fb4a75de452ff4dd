"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class EmptyInputError(ValidationError):
    """Analyzer received no rows. Fatal for the file, never retried."""


class NotFoundError(DomainError):
    """Requested domain entity or path does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations or a run already in flight."""


class StepUnavailableError(DomainError):
    """An external pipeline step (duplicate lookup, categorization) could not run.

    The caller keeps its prior state and may retry the step later.
    """

    def __init__(self, step: str, reason: str):
        super().__init__(f"{step} unavailable: {reason}")
        self.step = step
        self.reason = reason


def account_not_found(account_id: int) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def category_not_found(category_id: int) -> str:
    """Return message for missing category by ID."""
    return f"Category {category_id} not found"


def category_path_not_found(path: str) -> str:
    """Return message for missing category by path."""
    return f"Category '{path}' not found"


def batch_not_found(batch_id: str) -> str:
    """Return message for missing import batch."""
    return f"Import batch '{batch_id}' not found"


def staged_transaction_not_found(transaction_id: int, batch_id: str) -> str:
    """Return message for a staged row that is not part of the batch."""
    return f"Transaction {transaction_id} not found in batch '{batch_id}'"


def template_not_found(template_id: int) -> str:
    """Return message for missing mapping template."""
    return f"Mapping template {template_id} not found"


def batch_operation_in_flight(batch_id: str, operation: str) -> str:
    """Return message when a batch operation is already running."""
    return f"A {operation} run is already in progress for batch '{batch_id}'"
