"""
Result types returned by SessionManager.handle()

These are the ONLY return types from the command handler.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Union

from pedibga.contracts import OperationTicket, SessionState


@dataclass(frozen=True)
class CommandResult:
    """
    Command applied (possibly as a no-op, possibly setting error).

    Attributes:
        state: New session snapshot
        debug: Diagnostic details (applied fields, skipped reason, ...)
    """
    state: SessionState
    debug: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PendingOperation:
    """
    Command started an external round trip.

    state already has the busy flag raised. The caller runs
    SessionManager.execute(ticket) and feeds the outcome back through
    CompleteOperation.

    Attributes:
        state: Session snapshot with the busy flag set
        ticket: Request envelope for the gateway call
    """
    state: SessionState
    ticket: OperationTicket


@dataclass(frozen=True)
class IllegalCommand:
    """
    Command rejected (invalid transition, busy session, stale ticket).

    Examples:
    - SelectScenario when a scenario step has already been passed
    - Analyze while an extraction is running
    - CompleteOperation after the session was reset

    Attributes:
        reason: Human-readable explanation
        command_type: Name of rejected command type
    """
    reason: str
    command_type: str


Result = Union[CommandResult, PendingOperation, IllegalCommand]
