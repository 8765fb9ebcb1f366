"""
Session Manager - command handler for the blood gas intake wizard (Functional Core)

Responsibilities:
- Dispatch commands to the step machine and the acquisition controller
- Issue operation tickets for external round trips
- Call the extraction and report gateways (execute)
- Translate every gateway failure into the session's error string
- Reject illegal commands as IllegalCommand results

Design principles:
- Ephemeral per command (no session state held between calls)
- State in, result out: handle(command, state) never mutates its input
- Two-phase operations: begin (busy flag + ticket), execute (gateway, no
  state), complete (apply outcome if the ticket is still current)
- No exception escapes to the presentation layer untranslated
"""

import logging
from typing import Any, Callable, Dict, Optional

from pedibga.commands import (
    Analyze,
    Command,
    CompleteOperation,
    ExtractFromImage,
    ExtractFromText,
    GoBack,
    GoToInput,
    Reset,
    SelectScenario,
    SetAcquisitionMode,
    SetPastedText,
    UpdateContextField,
    UpdateMeasurement,
)
from pedibga.contracts import (
    INITIAL_STATE,
    OperationKind,
    OperationOutcome,
    OperationTicket,
    SessionState,
)
from pedibga.core import acquisition, transitions
from pedibga.errors import ExtractionError, IllegalTransition, ReportError, ValidationError
from pedibga.results import CommandResult, IllegalCommand, PendingOperation, Result
from pedibga.utils.helpers import generate_operation_token
from pedibga.utils.image_encoding import encode_image
from pedibga.utils.messages import (
    IMAGE_EXTRACTION_FAILED,
    REPORT_FAILED,
    TEXT_EXTRACTION_FAILED,
)

logger = logging.getLogger(__name__)

# User-facing message per failed operation kind
FAILURE_MESSAGES = {
    OperationKind.IMAGE_EXTRACTION: IMAGE_EXTRACTION_FAILED,
    OperationKind.TEXT_EXTRACTION: TEXT_EXTRACTION_FAILED,
    OperationKind.ANALYSIS: REPORT_FAILED,
}


class SessionManager:
    """
    Orchestrates one wizard session through commands

    Functional core design:
    - Gateways cached (stateless), session state external
    - handle() transforms state deterministically
    - execute() is the only place external calls happen
    """

    def __init__(self, extraction_gateway, report_gateway,
                 token_factory: Callable[[], str] = generate_operation_token):
        """
        Initialize Session Manager with gateway instances

        Args:
            extraction_gateway: Object with extract_from_image(encoded_image)
                and extract_from_text(raw_text), both returning a dict of
                MeasurementField -> value
            report_gateway: Object with generate_report(state) -> str
            token_factory: Callable producing unique operation tokens

        Raises:
            TypeError: If a gateway is missing a required method
        """
        self._validate_gateways(extraction_gateway, report_gateway)

        self.extraction_gateway = extraction_gateway
        self.report_gateway = report_gateway
        self.token_factory = token_factory

        self._handlers: Dict[type, Callable[[Any, SessionState], Result]] = {
            SelectScenario: self._handle_select_scenario,
            GoToInput: self._handle_go_to_input,
            GoBack: self._handle_go_back,
            UpdateContextField: self._handle_update_context_field,
            UpdateMeasurement: self._handle_update_measurement,
            SetAcquisitionMode: self._handle_set_acquisition_mode,
            SetPastedText: self._handle_set_pasted_text,
            ExtractFromImage: self._handle_extract_from_image,
            ExtractFromText: self._handle_extract_from_text,
            Analyze: self._handle_analyze,
            Reset: self._handle_reset,
            CompleteOperation: self._handle_complete_operation,
        }

        logger.info("Session Manager initialized (functional core)")

    def _validate_gateways(self, extraction_gateway, report_gateway):
        """Validate gateway interfaces"""
        for method in ('extract_from_image', 'extract_from_text'):
            if not callable(getattr(extraction_gateway, method, None)):
                raise TypeError(f"extraction_gateway must have callable {method}() method")

        if not callable(getattr(report_gateway, 'generate_report', None)):
            raise TypeError("report_gateway must have callable generate_report() method")

    # ==================== PUBLIC API ====================

    def handle(self, command: Command, state: Optional[SessionState] = None) -> Result:
        """
        Apply one command to a session snapshot

        Args:
            command: Any command from pedibga.commands
            state: Current snapshot (None starts a fresh session)

        Returns:
            CommandResult: command applied (state may carry an error)
            PendingOperation: round trip started; run execute(ticket) next
            IllegalCommand: rejected, caller keeps its previous state
        """
        if state is None:
            state = INITIAL_STATE

        command_type = type(command).__name__
        handler = self._handlers.get(type(command))
        if handler is None:
            logger.warning(f"Unknown command type: {command_type}")
            return IllegalCommand(reason="Unknown command", command_type=command_type)

        try:
            return handler(command, state)
        except IllegalTransition as e:
            logger.warning(f"Rejected {command_type}: {e}")
            return IllegalCommand(reason=str(e), command_type=command_type)

    def execute(self, ticket: OperationTicket) -> OperationOutcome:
        """
        Perform the gateway call for a ticket

        Touches no session state, so callers may run it outside any lock.
        Every failure is captured in the outcome.

        Args:
            ticket: Ticket from a PendingOperation

        Returns:
            OperationOutcome with the gateway payload or the failure
        """
        try:
            if ticket.kind is OperationKind.IMAGE_EXTRACTION:
                encoded = encode_image(ticket.payload)
                payload = self.extraction_gateway.extract_from_image(encoded)
            elif ticket.kind is OperationKind.TEXT_EXTRACTION:
                payload = self.extraction_gateway.extract_from_text(ticket.payload)
            elif ticket.kind is OperationKind.ANALYSIS:
                payload = self.report_gateway.generate_report(ticket.payload)
            else:
                raise ValueError(f"Unknown operation kind: {ticket.kind!r}")

        except (ExtractionError, ReportError) as e:
            logger.error(f"[{ticket.token}] {ticket.kind.value} failed: {type(e).__name__} - {e}")
            return self._failed(ticket, e)

        except Exception as e:
            logger.error(
                f"[{ticket.token}] {ticket.kind.value} crashed: {type(e).__name__} - {e}",
                exc_info=True,
            )
            return self._failed(ticket, e)

        logger.info(f"[{ticket.token}] {ticket.kind.value} succeeded")
        return OperationOutcome(ticket=ticket, succeeded=True, payload=payload)

    def run(self, command: Command, state: Optional[SessionState] = None) -> Result:
        """
        Handle a command and, if it starts a round trip, finish it inline

        Convenience for single-threaded callers. Concurrent callers should
        use handle/execute/CompleteOperation so the busy snapshot is
        published before the gateway call.
        """
        result = self.handle(command, state)
        if not isinstance(result, PendingOperation):
            return result

        outcome = self.execute(result.ticket)
        return self.handle(CompleteOperation(outcome), result.state)

    # ==================== HANDLERS ====================

    def _handle_select_scenario(self, command: SelectScenario, state: SessionState) -> Result:
        return CommandResult(state=transitions.select_scenario(state, command.scenario))

    def _handle_go_to_input(self, command: GoToInput, state: SessionState) -> Result:
        return CommandResult(state=transitions.go_to_input(state))

    def _handle_go_back(self, command: GoBack, state: SessionState) -> Result:
        return CommandResult(state=transitions.go_back(state))

    def _handle_update_context_field(self, command: UpdateContextField, state: SessionState) -> Result:
        return CommandResult(
            state=transitions.update_context_field(state, command.field, command.value)
        )

    def _handle_update_measurement(self, command: UpdateMeasurement, state: SessionState) -> Result:
        return CommandResult(
            state=transitions.update_measurement(state, command.field, command.value)
        )

    def _handle_set_acquisition_mode(self, command: SetAcquisitionMode, state: SessionState) -> Result:
        return CommandResult(state=acquisition.set_mode(state, command.mode))

    def _handle_set_pasted_text(self, command: SetPastedText, state: SessionState) -> Result:
        return CommandResult(state=acquisition.set_pasted_text(state, command.text))

    def _handle_extract_from_image(self, command: ExtractFromImage, state: SessionState) -> Result:
        token = self.token_factory()
        new_state = acquisition.begin_extraction(
            state, OperationKind.IMAGE_EXTRACTION, token,
            has_input=bool(command.image),
        )
        if new_state is None:
            return CommandResult(state=state, debug={'skipped': 'no_image'})

        logger.info(f"[{token}] Image extraction started ({command.filename or 'unnamed'})")
        return PendingOperation(
            state=new_state,
            ticket=OperationTicket(token=token, kind=OperationKind.IMAGE_EXTRACTION,
                                   payload=command.image),
        )

    def _handle_extract_from_text(self, command: ExtractFromText, state: SessionState) -> Result:
        token = self.token_factory()
        new_state = acquisition.begin_extraction(state, OperationKind.TEXT_EXTRACTION, token)
        if new_state is None:
            return CommandResult(state=state, debug={'skipped': 'empty_text'})

        logger.info(f"[{token}] Text extraction started")
        return PendingOperation(
            state=new_state,
            ticket=OperationTicket(token=token, kind=OperationKind.TEXT_EXTRACTION,
                                   payload=new_state.acquisition.pasted_text),
        )

    def _handle_analyze(self, command: Analyze, state: SessionState) -> Result:
        token = self.token_factory()
        try:
            new_state = transitions.begin_analysis(state, token)
        except ValidationError as e:
            logger.info(f"Analysis blocked, missing: {list(e.missing_fields)}")
            return CommandResult(
                state=transitions.replace_error(state, str(e)),
                debug={'missing_fields': list(e.missing_fields)},
            )

        logger.info(f"[{token}] Analysis started")
        return PendingOperation(
            state=new_state,
            ticket=OperationTicket(token=token, kind=OperationKind.ANALYSIS, payload=new_state),
        )

    def _handle_reset(self, command: Reset, state: SessionState) -> Result:
        return CommandResult(state=transitions.reset(state))

    def _handle_complete_operation(self, command: CompleteOperation, state: SessionState) -> Result:
        outcome = command.outcome
        ticket = outcome.ticket
        debug = {'operation': ticket.kind.value, 'token': ticket.token}

        if ticket.kind is OperationKind.ANALYSIS:
            report = outcome.payload
            if outcome.succeeded and isinstance(report, str) and report.strip():
                new_state = transitions.complete_analysis(state, ticket.token, report)
            elif outcome.succeeded:
                logger.warning(f"[{ticket.token}] Report gateway returned no report text")
                new_state = transitions.fail_analysis(
                    state, ticket.token, FAILURE_MESSAGES[ticket.kind]
                )
                debug['error_type'] = "EmptyReport"
            else:
                new_state = transitions.fail_analysis(
                    state, ticket.token, FAILURE_MESSAGES[ticket.kind]
                )
                debug['error_type'] = outcome.error_type
            return CommandResult(state=new_state, debug=debug)

        if outcome.succeeded:
            new_state, applied = acquisition.complete_extraction(
                state, ticket.token, outcome.payload or {}
            )
            debug['applied_fields'] = applied
        else:
            new_state = acquisition.fail_extraction(
                state, ticket.token, FAILURE_MESSAGES[ticket.kind]
            )
            debug['error_type'] = outcome.error_type

        return CommandResult(state=new_state, debug=debug)

    # ==================== HELPERS ====================

    @staticmethod
    def _failed(ticket: OperationTicket, error: Exception) -> OperationOutcome:
        return OperationOutcome(
            ticket=ticket,
            succeeded=False,
            error_type=type(error).__name__,
            error_message=str(error),
        )
