"""ClaimGate engine errors.

Domain errors describe why an operation was refused and are final for the
given snapshot of the record. Infrastructure errors (``retryable=True``) mean
the outcome is unknown and the caller may try again.
"""


class ClaimGateError(Exception):
    """Base error for ClaimGate operations."""

    retryable = False

    def __init__(self, message: str, code: str = "CLAIMGATE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class TaskNotFound(ClaimGateError):
    """Order or charge does not exist."""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}", "TASK_NOT_FOUND")
        self.task_id = task_id


class ClaimConflict(ClaimGateError):
    """Lost the race to claim, or the order is held by someone else."""

    def __init__(self, task_id: str, holder_id: str | None = None):
        super().__init__(f"Order {task_id} is not available to claim", "CLAIM_CONFLICT")
        self.task_id = task_id
        self.holder_id = holder_id


class QuotaExceeded(ClaimGateError):
    """Provider already holds the maximum number of live claims."""

    def __init__(self, provider_id: str, limit: int):
        super().__init__(
            f"Provider {provider_id} already holds {limit} claims (limit: {limit})",
            "QUOTA_EXCEEDED",
        )
        self.provider_id = provider_id
        self.limit = limit


class NotOwner(ClaimGateError):
    """Caller is not the party this record is assigned to."""

    def __init__(self, task_id: str, caller_id: str):
        super().__init__(
            f"Caller {caller_id} does not own task {task_id}",
            "NOT_OWNER",
        )
        self.task_id = task_id
        self.caller_id = caller_id


class InvalidTransition(ClaimGateError):
    """Action is not defined for the current state and caller role."""

    def __init__(self, current_status: str, action: str, role: str | None = None, code: str = "INVALID_TRANSITION"):
        detail = f" by {role}" if role else ""
        super().__init__(f"Cannot {action}{detail} from {current_status}", code)
        self.current_status = current_status
        self.action = action
        self.role = role


class ConcurrentUpdate(InvalidTransition):
    """The record changed between read and conditional write."""

    def __init__(self, current_status: str, action: str):
        super().__init__(current_status, action, code="CONCURRENT_UPDATE")
        self.message = f"Task changed while attempting to {action}; re-fetch and retry"
        self.args = (self.message,)


class TerminalStateError(ClaimGateError):
    """Record is Completed/Cancelled (or a terminal charge state)."""

    def __init__(self, task_id: str, status: str):
        super().__init__(f"Task {task_id} is already {status}", "TERMINAL_STATE")
        self.task_id = task_id
        self.status = status


class StoreUnavailable(ClaimGateError):
    """The task store could not be reached."""

    retryable = True

    def __init__(self, detail: str = ""):
        super().__init__(f"Task store unavailable: {detail}".rstrip(": "), "STORE_UNAVAILABLE")


class PaymentUnavailable(ClaimGateError):
    """Payment gateway failed to create an intent."""

    retryable = True

    def __init__(self, detail: str = ""):
        super().__init__(f"Payment gateway unavailable: {detail}".rstrip(": "), "PAYMENT_UNAVAILABLE")
