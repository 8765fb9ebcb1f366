"""
View projection for the wizard.

render_view(state) is a pure function from SessionState to a JSON-safe
view model: one renderer per Step, selected from STEP_RENDERERS. The
presentation layer draws whatever comes back and issues commands; it
never reads or writes SessionState directly.
"""

from typing import Any, Callable, Dict, List

from pedibga.contracts import (
    STEP_ORDER,
    AcquisitionMode,
    Scenario,
    SessionState,
    Step,
)
from pedibga.utils.field_mappings import CONTEXT_FIELD_SPECS, MEASUREMENT_SPECS
from pedibga.utils.messages import ACCURACY_REMINDER, DISCLAIMER

STEP_LABELS = {
    Step.SCENARIO: "1. Scenario",
    Step.DETAILS: "2. Details",
    Step.INPUT: "3. Data",
    Step.ANALYSIS: "4. Report",
}

SCENARIO_CARDS = (
    {
        'id': Scenario.NEONATAL_CORD,
        'title': "Scenario A: Neonatal cord blood gas (UABGA)",
        'description': (
            "Umbilical artery/vein blood gas at birth, "
            "including asphyxia risk stratification."
        ),
    },
    {
        'id': Scenario.GENERAL,
        'title': "Scenario B: Pediatric/neonatal arterial blood gas",
        'description': "Routine blood gas analysis and monitoring for children of all ages.",
    },
)

DETAILS_TITLES = {
    Scenario.NEONATAL_CORD: "Newborn details",
    Scenario.GENERAL: "Patient details",
}

MODE_TABS = (
    (AcquisitionMode.MANUAL, "Manual entry"),
    (AcquisitionMode.IMAGE_EXTRACT, "Image recognition"),
    (AcquisitionMode.TEXT_EXTRACT, "Paste text"),
)

PASTE_PLACEHOLDER = "Paste report text here, e.g. pH 7.35, pCO2 45, HCO3 24..."


def step_indicator(current: Step) -> List[Dict[str, str]]:
    """Each step with status completed / current / upcoming"""
    current_index = STEP_ORDER.index(current)
    indicator = []
    for index, step in enumerate(STEP_ORDER):
        if index < current_index:
            status = "completed"
        elif index == current_index:
            status = "current"
        else:
            status = "upcoming"
        indicator.append({'id': step.value, 'label': STEP_LABELS[step], 'status': status})
    return indicator


def _render_scenario(state: SessionState) -> Dict[str, Any]:
    return {
        'title': "Choose an assessment scenario",
        'cards': [
            {
                'id': card['id'].value,
                'title': card['title'],
                'description': card['description'],
                'selected': state.scenario == card['id'],
            }
            for card in SCENARIO_CARDS
        ],
    }


def _render_details(state: SessionState) -> Dict[str, Any]:
    specs = CONTEXT_FIELD_SPECS[state.scenario]
    fields = []
    for context_field, spec in specs.items():
        value = state.context.get(context_field)
        if spec.input_type == "select" and not value:
            value = spec.default_choice or ""
        if spec.input_type == "checkbox":
            value = bool(value)
        fields.append({
            'id': context_field.value,
            'label': spec.label,
            'input_type': spec.input_type,
            'placeholder': spec.placeholder,
            'choices': [{'value': v, 'label': l} for v, l in spec.choices] if spec.choices else None,
            'value': value,
        })

    return {
        'title': DETAILS_TITLES[state.scenario],
        'scenario': state.scenario.value,
        'fields': fields,
        'actions': {'back': True, 'next': True},
    }


def _render_input(state: SessionState) -> Dict[str, Any]:
    mode = state.acquisition.mode
    view: Dict[str, Any] = {
        'tabs': [
            {'id': tab_mode.value, 'label': label, 'active': tab_mode == mode}
            for tab_mode, label in MODE_TABS
        ],
        'mode': mode.value,
        'actions': {
            'back': not state.is_busy,
            'analyze': {
                'label': "Analysing..." if state.analyzing else "Generate report",
                'disabled': state.is_busy,
            },
        },
    }

    if mode is AcquisitionMode.MANUAL:
        view['reminder'] = ACCURACY_REMINDER
        view['fields'] = [
            {
                'id': measurement.value,
                'label': spec.label,
                'unit': spec.unit,
                'required': spec.required,
                'tooltip': spec.tooltip,
                'value': state.measurements.get(measurement),
            }
            for measurement, spec in MEASUREMENT_SPECS.items()
        ]
    elif mode is AcquisitionMode.IMAGE_EXTRACT:
        view['upload'] = {
            'label': "Recognising..." if state.extracting else "Choose image",
            'disabled': state.extracting,
        }
    else:
        view['paste'] = {
            'text': state.acquisition.pasted_text,
            'placeholder': PASTE_PLACEHOLDER,
            'label': "Parsing..." if state.extracting else "Parse text",
            'disabled': state.extracting,
        }

    return view


def _render_analysis(state: SessionState) -> Dict[str, Any]:
    return {
        'report': state.report,
        'disclaimer': DISCLAIMER,
        'actions': {'reset': True},
    }


STEP_RENDERERS: Dict[Step, Callable[[SessionState], Dict[str, Any]]] = {
    Step.SCENARIO: _render_scenario,
    Step.DETAILS: _render_details,
    Step.INPUT: _render_input,
    Step.ANALYSIS: _render_analysis,
}


def render_view(state: SessionState) -> Dict[str, Any]:
    """
    Project a session snapshot to the view model

    Returns:
        dict with 'step', 'step_indicator', 'error', 'busy' and
        'page' (the step-specific payload)
    """
    return {
        'step': state.step.value,
        'step_indicator': step_indicator(state.step),
        'error': state.error,
        'busy': {'extracting': state.extracting, 'analyzing': state.analyzing},
        'page': STEP_RENDERERS[state.step](state),
    }
