"""
Form Observation Model (formobs) Package

Bidirectional transformation between clinical form-entry trees and the flat,
group-aware observation list persisted with an encounter.

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO knowledge of:
    - How form definitions are fetched
    - How observations are persisted
    - How save scripts are interpreted
    - UI rendering or localization

Those are supplied by callers (form definitions, executors) or live
entirely outside this package.

Every transform is a pure function of its inputs.
"""

from formobs.model import (
    CodedAnswer,
    ComplexValue,
    ControlKind,
    ControlNode,
    ControlTree,
    FormDefinition,
    Observation,
)
from formobs.resolver import resolve_datatype
from formobs.values import normalize_value
from formobs.form_encoder import form_to_observations
from formobs.form_decoder import observations_to_form
from formobs.notes import extract_notes
from formobs.scripting import ScriptError, run_save_script
from formobs.save import SaveOutcome, SaveState, prepare_save, continue_anyway

__version__ = "0.1.0"

__all__ = [
    "CodedAnswer",
    "ComplexValue",
    "ControlKind",
    "ControlNode",
    "ControlTree",
    "FormDefinition",
    "Observation",
    "resolve_datatype",
    "normalize_value",
    "form_to_observations",
    "observations_to_form",
    "extract_notes",
    "ScriptError",
    "run_save_script",
    "SaveOutcome",
    "SaveState",
    "prepare_save",
    "continue_anyway",
]
