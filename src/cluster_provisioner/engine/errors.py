"""Error taxonomy shared by every reconciler.

Two orthogonal axes:

- condition kinds (``NotFoundError``, ``TooManyFoundError``, ``ForbiddenError``,
  ``PreconditionFailedError``), detected anywhere in an exception chain;
- retry dispositions (``TerminalError``, ``TransientError``) that tell the
  caller whether and when to try again.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


class ProvisionerError(Exception):
    """Base exception for provisioner errors."""


class NotFoundError(ProvisionerError):
    """Raised when a lookup matched no resource."""


class TooManyFoundError(ProvisionerError):
    """Raised when a lookup that should be unique matched several resources."""


class ForbiddenError(ProvisionerError):
    """Raised when the provider refuses the call (HTTP 403)."""


class PreconditionFailedError(ProvisionerError):
    """Raised when the provider rejects the call in the resource's current state."""


class CallError(ProvisionerError):
    """Raised when a provider call fails. The underlying exception is chained via ``__cause__``."""

    def __init__(self, method: str, cause: BaseException) -> None:
        super().__init__(f"error occurred while calling {method}: {cause}")
        self.method = method


class ReconcileError(ProvisionerError):
    """Base class for errors that carry a retry disposition."""

    requeue_after: float = 0.0

    @property
    def is_terminal(self) -> bool:
        return False

    @property
    def is_transient(self) -> bool:
        return False


class TerminalError(ReconcileError):
    """Misconfiguration that will not resolve itself. Requires operator action."""

    @property
    def is_terminal(self) -> bool:
        return True

    def __str__(self) -> str:
        return f"reconcile error: {super().__str__()}"


class TransientError(ReconcileError):
    """Temporary condition. Retry after ``requeue_after`` seconds."""

    def __init__(self, message: str, *, requeue_after: float) -> None:
        if requeue_after <= 0:
            raise ValueError("requeue_after must be positive")
        super().__init__(message)
        self.requeue_after = requeue_after

    @property
    def is_transient(self) -> bool:
        return True

    def __str__(self) -> str:
        return f"{super().__str__()}. Object will be requeued after {self.requeue_after:g}s"


class ReconcileCanceled(TransientError):
    """Raised when the reconcile context was canceled or its deadline passed."""

    def __init__(self, message: str = "reconcile canceled", *, requeue_after: float = 1.0) -> None:
        super().__init__(message, requeue_after=requeue_after)


def iter_chain(exc: BaseException | None) -> Iterator[BaseException]:
    """Yield *exc* and every exception it wraps, outermost first."""
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        if exc.__cause__ is not None:
            exc = exc.__cause__
        elif not exc.__suppress_context__:
            exc = exc.__context__
        else:
            exc = None


def _has(exc: BaseException, kind: type[BaseException]) -> bool:
    return any(isinstance(e, kind) for e in iter_chain(exc))


def is_not_found(exc: BaseException) -> bool:
    return _has(exc, NotFoundError)


def is_too_many_found(exc: BaseException) -> bool:
    return _has(exc, TooManyFoundError)


def is_forbidden(exc: BaseException) -> bool:
    return _has(exc, ForbiddenError)


def is_precondition_failed(exc: BaseException) -> bool:
    return _has(exc, PreconditionFailedError)


def find_reconcile_error(exc: BaseException) -> ReconcileError | None:
    """Return the first ``ReconcileError`` found in the exception chain, if any."""
    for e in iter_chain(exc):
        if isinstance(e, ReconcileError):
            return e
    return None


_STATUS_ERRORS: dict[int, type[ProvisionerError]] = {
    403: ForbiddenError,
    404: NotFoundError,
    412: PreconditionFailedError,
}


def error_for_status(status_code: int, message: str) -> ProvisionerError:
    """Build the condition error matching an HTTP status returned by the provider."""
    return _STATUS_ERRORS.get(status_code, ProvisionerError)(message)


@contextlib.contextmanager
def ignore_errors(*predicates: Callable[[BaseException], bool]) -> Iterator[None]:
    """Swallow errors matching any of *predicates*; re-raise everything else.

    Used at call sites where a condition (usually NotFound) is an expected
    outcome, e.g. existence checks before a create.
    """
    try:
        yield
    except ProvisionerError as exc:
        if not any(p(exc) for p in predicates):
            raise


def ignore_not_found() -> contextlib.AbstractContextManager[None]:
    return ignore_errors(is_not_found)
