"""
Save-time script stage.

A form schema may embed a script under schema["events"]["onFormSave"]
that inspects or rewrites the observation list before it is persisted.
This module only orchestrates that call; interpreting the script is the
job of an injected executor.

ISOLATION:
    The executor never sees the caller's list. A deep copy is placed in
    the script context; the caller-owned observations are never mutated.

FAILURE POLICY:
    Fail fast. Every problem (invalid script, executor exception) surfaces
    once as ScriptError with the form's name in the message. No retries.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol

from formobs.config import DEFAULT_CONFIG, FormsConfig
from formobs.model import FormDefinition, Observation

logger = logging.getLogger(__name__)


UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


class ScriptError(Exception):
    """
    Raised when a save-time script cannot be safely completed.

    Attributes:
        form_name: Display name of the form whose script failed
    """

    def __init__(self, message: str, form_name: Optional[str] = None):
        super().__init__(message)
        self.form_name = form_name


class ScriptExecutor(Protocol):
    """
    Runs a save script. Supplied by the caller (sandboxed interpreter).

    Returns a replacement observation list, or anything else (including
    None) to keep the context's copy.
    """

    def __call__(self, form_state: Optional[Mapping[str, Any]], script: str, patient: Dict[str, str]) -> Any:
        ...


@dataclass
class SaveScriptContext:
    """State handed to a save script. `observations` is a private deep copy."""

    observations: List[Observation]
    patient: Dict[str, str]
    form_name: str
    form_id: str
    form_state: Optional[Mapping[str, Any]] = None


def find_save_script(form_definition: FormDefinition, config: FormsConfig = DEFAULT_CONFIG) -> Any:
    """
    Return the raw save script from the schema, or None when absent.

    The returned value is not validated; it may be any type.
    """
    schema = form_definition.schema
    if not isinstance(schema, Mapping):
        return None
    events = schema.get("events")
    if not isinstance(events, Mapping):
        return None
    return events.get(config.save_event)


def describe_error(error: Any) -> str:
    """
    Best-effort message extraction from whatever the executor raised.

    Priority: exception message, raw string, a `message` field,
    UNKNOWN_ERROR_MESSAGE. An exception whose first argument is a mapping
    or an object with a `message` is unwrapped first.
    """
    if isinstance(error, BaseException):
        payload = error.args[0] if error.args else None
        if isinstance(payload, Mapping) or (
            not isinstance(payload, str) and getattr(payload, "message", None) is not None
        ):
            error = payload
        elif str(error):
            return str(error)

    if isinstance(error, str):
        return error or UNKNOWN_ERROR_MESSAGE

    if isinstance(error, Mapping):
        message = error.get("message")
    else:
        message = getattr(error, "message", None)
    return str(message) if message is not None else UNKNOWN_ERROR_MESSAGE


def _validate_script(script: Any) -> str:
    if not isinstance(script, str) or script.strip() == "":
        raise ValueError("Invalid onFormSave script: not a string or empty")
    return script


def run_save_script(
    form_definition: FormDefinition,
    observations: List[Observation],
    patient_id: str,
    executor: ScriptExecutor,
    form_state: Optional[Mapping[str, Any]] = None,
    config: FormsConfig = DEFAULT_CONFIG,
) -> List[Observation]:
    """
    Run the form's save script, if any, against a copy of the observations.

    Args:
        form_definition: Form whose schema may hold the script
        observations: Caller-owned observations (never mutated)
        patient_id: Patient the encounter belongs to
        executor: Callable executing the script
        form_state: Optional raw form-state snapshot passed to the executor
        config: Supplies the save event key

    Returns:
        - `observations` itself when the form has no script
        - the executor's list when it returns one
        - otherwise the context's (possibly script-mutated) copy

    Raises:
        ScriptError: If the script is invalid or execution fails
    """
    script = find_save_script(form_definition, config)
    if script is None:
        return observations

    try:
        script = _validate_script(script)
        context = SaveScriptContext(
            observations=copy.deepcopy(observations),
            patient={"uuid": patient_id},
            form_name=form_definition.name,
            form_id=form_definition.id,
            form_state=form_state,
        )
        result = executor(form_state, script, context.patient)
    except Exception as e:
        message = f'Error in {config.save_event} event for form "{form_definition.name}": {describe_error(e)}'
        logger.warning(message)
        raise ScriptError(message, form_name=form_definition.name) from e

    if isinstance(result, list):
        logger.info("Save script for form %s replaced %d observations with %d",
                    form_definition.name, len(observations), len(result))
        return result

    return context.observations
