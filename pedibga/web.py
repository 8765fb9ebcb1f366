"""
Flask web surface for the blood gas intake wizard.

One in-memory wizard session per process, guarded by a lock. Every
route turns its request into a command, runs it through SessionManager
and answers with the rendered view.

Round trips (extraction, analysis) are split across the lock: the busy
snapshot is published before the gateway call, the gateway runs with
the lock released, and the outcome is applied under the lock again. A
reset issued meanwhile makes the completion stale and it is dropped.
"""

import logging
import os
import threading
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request

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
from pedibga.config import Settings
from pedibga.contracts import (
    CONTEXT_VARIANTS,
    INITIAL_STATE,
    AcquisitionMode,
    MeasurementField,
    Scenario,
    SessionState,
)
from pedibga.results import IllegalCommand, PendingOperation, Result
from pedibga.views import render_view

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.bmp', '.gif', '.tif', '.tiff', '.webp'}


class BadRequest(Exception):
    """Request body could not be turned into a command"""


class ServerError(Exception):
    """Unexpected failure while handling a command"""


class WizardSession:
    """
    Holds the current snapshot and serialises access to it

    SessionManager is stateless; this is the only place a snapshot lives
    between requests.
    """

    def __init__(self, session_manager) -> None:
        self.session_manager = session_manager
        self.state: SessionState = INITIAL_STATE
        self._lock = threading.Lock()

    def snapshot(self) -> SessionState:
        with self._lock:
            return self.state

    def dispatch(self, command: Command) -> Tuple[Result, SessionState]:
        """
        Run one command, finishing any round trip it starts

        Returns:
            (result, state): the last result and the snapshot now stored.
            For a stale completion the result is IllegalCommand and the
            stored snapshot is whatever replaced the busy one.
        """
        with self._lock:
            result = self.session_manager.handle(command, self.state)
            if not isinstance(result, IllegalCommand):
                self.state = result.state

        if not isinstance(result, PendingOperation):
            return result, self.snapshot()

        outcome = self.session_manager.execute(result.ticket)

        with self._lock:
            completion = self.session_manager.handle(CompleteOperation(outcome), self.state)
            if isinstance(completion, IllegalCommand):
                logger.info(f"[{result.ticket.token}] Outcome discarded: {completion.reason}")
            else:
                self.state = completion.state
            return completion, self.state


def create_app(session_manager, settings: Optional[Settings] = None) -> Flask:
    """
    Build the Flask app around a SessionManager

    Args:
        session_manager: Configured SessionManager
        settings: Runtime settings (default Settings())

    Returns:
        Flask app; the session lives in app.extensions['pedibga']
    """
    settings = settings or Settings()

    app = Flask(__name__)
    app.config['SECRET_KEY'] = settings.secret_key
    app.config['MAX_CONTENT_LENGTH'] = settings.max_upload_mb * 1024 * 1024

    session = WizardSession(session_manager)
    app.extensions['pedibga'] = session

    def dispatch(command: Command):
        try:
            return session.dispatch(command)
        except Exception as e:
            logger.error(f"Error handling {type(command).__name__}: {e}", exc_info=True)
            raise ServerError(str(e)) from e

    def respond(command: Command):
        return answer(*dispatch(command))

    def answer(result: Result, state: SessionState):
        body: Dict[str, Any] = {'success': True, 'view': render_view(state)}
        if isinstance(result, IllegalCommand):
            body['success'] = False
            body['error'] = result.reason
            return jsonify(body), 409

        if result.debug:
            body['debug'] = _json_safe(result.debug)
        return jsonify(body)

    def bad_request(message: str):
        return jsonify({'success': False, 'error': message}), 400

    @app.errorhandler(BadRequest)
    def handle_bad_request(e):
        return bad_request(str(e))

    @app.errorhandler(ServerError)
    def handle_server_error(e):
        return jsonify({'success': False, 'error': str(e)}), 500

    @app.errorhandler(413)
    def handle_too_large(e):
        return jsonify({
            'success': False,
            'error': f"File too large (limit {settings.max_upload_mb} MB)"
        }), 413

    @app.route('/api/state', methods=['GET'])
    def get_state():
        """Current view model"""
        return jsonify({'success': True, 'view': render_view(session.snapshot())})

    @app.route('/api/scenario', methods=['POST'])
    def select_scenario():
        scenario = _parse_enum(Scenario, _json_body().get('scenario'), 'scenario')
        return respond(SelectScenario(scenario))

    @app.route('/api/context', methods=['POST'])
    def update_context():
        """Set one patient-context field of the active scenario"""
        data = _json_body()
        state = session.snapshot()
        if state.scenario is None:
            return respond(UpdateContextField(field=None, value=data.get('value')))

        field_type = CONTEXT_VARIANTS[state.scenario].field_type
        context_field = _parse_enum(field_type, data.get('field'), 'field')
        return respond(UpdateContextField(field=context_field, value=data.get('value')))

    @app.route('/api/next', methods=['POST'])
    def go_to_input():
        return respond(GoToInput())

    @app.route('/api/back', methods=['POST'])
    def go_back():
        return respond(GoBack())

    @app.route('/api/measurement', methods=['POST'])
    def update_measurement():
        data = _json_body()
        measurement = _parse_enum(MeasurementField, data.get('field'), 'field')
        return respond(UpdateMeasurement(field=measurement, value=_as_text(data.get('value'))))

    @app.route('/api/mode', methods=['POST'])
    def set_mode():
        mode = _parse_enum(AcquisitionMode, _json_body().get('mode'), 'mode')
        return respond(SetAcquisitionMode(mode))

    @app.route('/api/paste', methods=['POST'])
    def set_pasted_text():
        return respond(SetPastedText(_as_text(_json_body().get('text'))))

    @app.route('/api/extract/text', methods=['POST'])
    def extract_text():
        """Parse the paste buffer; an optional 'text' replaces it first"""
        data = request.get_json(silent=True) or {}
        if 'text' in data:
            result, state = dispatch(SetPastedText(_as_text(data.get('text'))))
            if isinstance(result, IllegalCommand):
                return answer(result, state)
        return respond(ExtractFromText())

    @app.route('/api/extract/image', methods=['POST'])
    def extract_image():
        """Recognise an uploaded photo (multipart 'image') or a data URL (JSON 'image')"""
        upload = request.files.get('image')
        if upload is not None:
            filename = upload.filename or ""
            extension = os.path.splitext(filename)[1].lower()
            if extension not in ALLOWED_IMAGE_EXTENSIONS:
                return bad_request(f"Unsupported image type: {extension or 'none'}")
            return respond(ExtractFromImage(image=upload.read(), filename=filename))

        data = request.get_json(silent=True) or {}
        image = data.get('image') or ""
        if not isinstance(image, str):
            return bad_request("image must be a data URL or base64 string")
        return respond(ExtractFromImage(image=image, filename=data.get('filename')))

    @app.route('/api/analyze', methods=['POST'])
    def analyze():
        return respond(Analyze())

    @app.route('/api/reset', methods=['POST'])
    def reset():
        return respond(Reset())

    logger.info(f"Web app created (upload limit {settings.max_upload_mb} MB)")
    return app


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("Expected a JSON object body")
    return data


def _parse_enum(enum_type, raw: Any, name: str):
    try:
        return enum_type(raw)
    except (ValueError, TypeError):
        allowed = ", ".join(member.value for member in enum_type)
        raise BadRequest(f"Invalid {name}: {raw!r} (expected one of: {allowed})") from None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        raise BadRequest("Expected text, got boolean")
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        raise BadRequest(f"Expected text, got {type(value).__name__}")
    return value


def _json_safe(debug: Dict[str, Any]) -> Dict[str, Any]:
    safe = {}
    for key, value in debug.items():
        if isinstance(value, (list, tuple)):
            safe[key] = [getattr(item, 'value', item) for item in value]
        else:
            safe[key] = getattr(value, 'value', value)
    return safe
