"""
Observation -> Form transformer.

Rebuilds per-field controls from a previously saved observation list so an
encounter can be re-edited.

Observations are keyed by field_path (falling back to concept_id). The
first observation for a key creates a generic OBS_CONTROL; every further
observation with the same key is merged into it as a MULTISELECT.
Group observations repeating a key are merged as one GROUP whose members
are the members of every repeat, decoded together.

KNOWN LIMITATION:
    Two fields sharing a concept without distinct field paths collapse into
    one control. The persisted shape is not changed to compensate.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from formobs.config import DEFAULT_CONFIG, FormsConfig
from formobs.model import ControlKind, ControlNode, ControlTree, FormDefinition, Observation
from formobs.values import decode_wire_value

logger = logging.getLogger(__name__)


def observations_to_form(
    observations: List[Observation],
    form_definition: FormDefinition,
    config: FormsConfig = DEFAULT_CONFIG,
) -> ControlTree:
    """
    Transform observations back into a control tree.

    Args:
        observations: Saved observations (flat, groups nested in children)
        form_definition: Form the observations belong to; stored in the
            returned tree's metadata
        config: Supplies the datetime pattern used for value coercion

    Returns:
        ControlTree with one control per distinct key, in first-seen order
    """
    if not observations:
        return ControlTree(controls=[], metadata={})
    return ControlTree(
        controls=_decode_controls(observations, config),
        metadata={"form_definition": form_definition},
    )


def _decode_controls(observations: Iterable[Observation], config: FormsConfig) -> List[ControlNode]:
    controls: Dict[str, ControlNode] = {}
    group_members: Dict[str, List[Observation]] = {}

    for obs in observations:
        key = obs.key
        existing = controls.get(key)

        if obs.children and (existing is None or key in group_members):
            if existing is None:
                controls[key] = _new_control(key, obs, config)
                group_members[key] = []
            else:
                logger.debug("Merging repeated group observation for %s", key)
                _copy_notes(existing, obs)
            group_members[key].extend(obs.children)
            continue

        if existing is None:
            controls[key] = _new_control(key, obs, config)
            continue

        logger.debug("Merging repeated observation for %s into multiselect", key)
        if not isinstance(existing.value, list):
            existing.value = [existing.value]
        existing.value.append(decode_wire_value(obs.value, config))
        existing.kind = ControlKind.MULTISELECT
        _copy_notes(existing, obs)

    for key, members in group_members.items():
        controls[key].children = _decode_controls(members, config)

    return list(controls.values())


def _new_control(key: str, obs: Observation, config: FormsConfig) -> ControlNode:
    control = ControlNode(
        id=key,
        concept_id=obs.concept_id,
        kind=ControlKind.GROUP if obs.children else ControlKind.OBS_CONTROL,
        value=decode_wire_value(obs.value, config),
    )
    _copy_notes(control, obs)
    return control


def _copy_notes(control: ControlNode, obs: Observation) -> None:
    # last write wins
    if obs.interpretation:
        control.interpretation = obs.interpretation
    if obs.comment:
        control.comment = obs.comment
