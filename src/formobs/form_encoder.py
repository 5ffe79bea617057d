"""
Form -> Observation transformer.

Walks a ControlTree (including nested group members) and produces the
flat, group-aware observation list that is persisted with an encounter.

Rules, applied per control:
    1. SECTION with an empty concept id      -> skipped (structural label)
    2. control with children (group)         -> one observation, value None,
                                                children built recursively
    3. childless control with value None     -> skipped
    4. MULTISELECT holding a list            -> one observation per element
    5. any other valued control              -> one normalized observation

Every observation produced by one call shares a single timestamp.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from formobs.config import DEFAULT_CONFIG, FormsConfig
from formobs.model import ControlKind, ControlNode, ControlTree, FormDefinition, Observation
from formobs.resolver import resolve_datatype
from formobs.values import current_timestamp, normalize_value

logger = logging.getLogger(__name__)


def form_to_observations(
    tree: ControlTree,
    form_definition: FormDefinition,
    now: Optional[Any] = None,
    config: FormsConfig = DEFAULT_CONFIG,
) -> List[Observation]:
    """
    Transform a control tree into observations.

    Args:
        tree: Controls captured by the UI
        form_definition: Form whose schema supplies concept datatypes
        now: Capture instant (datetime or timestamp string); defaults to
            the current UTC time, read once per call
        config: Namespace and related settings

    Returns:
        Observations in control order; group members nested in children
    """
    if not tree.controls:
        return []
    encoder = _Encoder(form_definition.schema, current_timestamp(now), config)
    return encoder.encode_all(tree.controls)


class _Encoder:
    def __init__(self, schema: Any, timestamp: str, config: FormsConfig):
        self.schema = schema
        self.timestamp = timestamp
        self.config = config

    def encode_all(self, controls: Iterable[ControlNode]) -> List[Observation]:
        observations: List[Observation] = []
        for control in controls:
            observations.extend(self.encode(control))
        return observations

    def encode(self, control: ControlNode) -> List[Observation]:
        if control.kind == ControlKind.SECTION and not control.concept_id:
            return []

        if control.is_group:
            group = self._observation(control, None)
            group.children = self.encode_all(control.children)
            return [group]

        if control.value is None:
            logger.debug("Skipping control %s: no value", control.id)
            return []

        if control.kind == ControlKind.MULTISELECT and isinstance(control.value, (list, tuple)):
            return [self._observation(control, selected) for selected in control.value]

        return [self._observation(control, normalize_value(control))]

    def _observation(self, control: ControlNode, value: Any) -> Observation:
        return Observation(
            concept_id=control.concept_id,
            value=value,
            datatype=resolve_datatype(self.schema, control.concept_id),
            timestamp=self.timestamp,
            namespace=self.config.namespace,
            field_path=control.id,
            comment=control.comment or None,
            interpretation=control.interpretation or None,
        )
