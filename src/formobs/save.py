"""
Save pipeline.

Runs the steps between "clinician pressed save" and "observations handed
to the encounter store":

    1. reject an entirely empty form
    2. surface field validation errors (mandatory vs invalid)
    3. recover notes attached to value-less fields
    4. run the form's save script

Each stop condition is reported as a SaveState on the outcome rather than
raised, so the caller can show the clinician the right prompt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional

from formobs.config import DEFAULT_CONFIG, FormsConfig
from formobs.documents import is_empty_value
from formobs.model import FormDefinition, Observation
from formobs.notes import extract_notes
from formobs.scripting import ScriptError, ScriptExecutor, run_save_script

logger = logging.getLogger(__name__)


MANDATORY_ERROR_MESSAGE = "mandatory"


class SaveState(Enum):
    """Why a save stopped short."""

    EMPTY = "empty"
    MANDATORY = "mandatory"
    INVALID = "invalid"
    SCRIPT_ERROR = "scriptError"


@dataclass
class SaveOutcome:
    """
    Result of a save attempt.

    Properties:
        observations: Final observations (only meaningful when ok)
        state: None on success, else the SaveState that stopped the save
        message: Human-readable detail (script errors)
    """

    observations: List[Observation] = field(default_factory=list)
    state: Optional[SaveState] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is None


def has_value(obs: Observation) -> bool:
    """True if the observation, or any group member, carries a value."""
    if not is_empty_value(obs.value):
        return True
    return any(has_value(child) for child in obs.children)


def to_plain_document(data: Any) -> Optional[dict]:
    """
    Convert a form-state snapshot into a plain dict.

    Accepts mappings and objects exposing a to_dict() method; anything
    else yields None.
    """
    if isinstance(data, Mapping):
        return dict(data)
    to_dict = getattr(data, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return None


def _error_message(error: Any) -> Optional[str]:
    if isinstance(error, Mapping):
        return error.get("message")
    return getattr(error, "message", None)


def _flatten(errors: Iterable[Any]) -> List[Any]:
    flat: List[Any] = []
    for error in errors:
        if isinstance(error, (list, tuple)):
            flat.extend(_flatten(error))
        else:
            flat.append(error)
    return flat


def classify_errors(errors: Optional[Iterable[Any]]) -> Optional[SaveState]:
    """
    Map field validation errors to a SaveState.

    Errors may be mappings or objects with a `message`; nested lists are
    flattened. Returns None when there are no errors.
    """
    flat = _flatten(errors or [])
    if not flat:
        return None
    if any(_error_message(error) == MANDATORY_ERROR_MESSAGE for error in flat):
        return SaveState.MANDATORY
    return SaveState.INVALID


def prepare_save(
    form_definition: FormDefinition,
    observations: List[Observation],
    patient_id: str,
    executor: ScriptExecutor,
    form_state: Any = None,
    errors: Optional[Iterable[Any]] = None,
    now: Optional[Any] = None,
    config: FormsConfig = DEFAULT_CONFIG,
) -> SaveOutcome:
    """
    Validate and finalize observations for persistence.

    Args:
        form_definition: Form being saved
        observations: Observations produced from the form controls;
            notes-only observations are appended to this list
        patient_id: Patient the encounter belongs to
        executor: Save script executor
        form_state: Raw submitted form state (mapping or to_dict() object)
        errors: Field validation errors reported by the UI
        now: Timestamp for appended notes
        config: Shared settings

    Returns:
        SaveOutcome; state is None when the observations may be persisted
    """
    if not any(has_value(obs) for obs in observations):
        logger.debug("Form %s has no values; not saving", form_definition.name)
        return SaveOutcome(observations=observations, state=SaveState.EMPTY)

    error_state = classify_errors(errors)
    if error_state is not None:
        return SaveOutcome(observations=observations, state=error_state)

    plain_state = to_plain_document(form_state)
    extract_notes(plain_state, observations, now=now, config=config)

    try:
        final = run_save_script(
            form_definition,
            observations,
            patient_id,
            executor,
            form_state=plain_state,
            config=config,
        )
    except ScriptError as e:
        return SaveOutcome(observations=observations, state=SaveState.SCRIPT_ERROR, message=str(e))

    return SaveOutcome(observations=final)


def continue_anyway(
    observations: List[Observation],
    form_state: Any = None,
    now: Optional[Any] = None,
    config: FormsConfig = DEFAULT_CONFIG,
) -> List[Observation]:
    """
    Save despite validation problems: recover notes, skip the save script.
    """
    extract_notes(to_plain_document(form_state), observations, now=now, config=config)
    return observations
