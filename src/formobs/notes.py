"""
Notes extractor.

The form encoder skips controls without a value, which also drops any
comment or interpretation the clinician attached to them. This module
walks the raw submitted form state (a separately shaped document) and
appends a value-less observation for each such note.

Submitted form state shape (only the keys read here):

    {"children": [
        {"id": "...", "formFieldPath": "...",  # or "fieldPath"
         "conceptUuid": "...",                  # own concept, or
         "value": {"value": ..., "comment": ..., "interpretation": ...,
                   "concept": {"uuid": "..."}}, # value-object concept, or
         "control": {"concept": {"uuid": "..."}},
         "comment": "...", "interpretation": "...",
         "children": [...]},
    ]}
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Set

from formobs.config import DEFAULT_CONFIG, FormsConfig
from formobs.documents import child_documents, concept_ref, is_empty_value
from formobs.model import Observation
from formobs.values import current_timestamp

logger = logging.getLogger(__name__)


OWN_CONCEPT_KEYS = ("conceptUuid", "conceptId")
FIELD_PATH_KEYS = ("formFieldPath", "fieldPath", "id")


def extract_notes(
    form_state: Any,
    observations: List[Observation],
    now: Optional[Any] = None,
    config: FormsConfig = DEFAULT_CONFIG,
) -> int:
    """
    Append notes-only observations for value-less fields carrying notes.

    Mutates `observations` in place. Concepts already present (at any
    depth) are never added a second time.

    Args:
        form_state: Submitted form state document; anything without a
            "children" list is ignored
        observations: Observation list to append to
        now: Timestamp for appended observations (see form_to_observations)
        config: Namespace settings

    Returns:
        Number of observations appended
    """
    children = child_documents(form_state)
    if not children:
        return 0

    present = _concepts_present(observations)
    timestamp = current_timestamp(now)
    before = len(observations)
    for child in children:
        _visit(child, observations, present, timestamp, config)

    added = len(observations) - before
    if added:
        logger.debug("Extracted %d notes-only observations", added)
    return added


def _concepts_present(observations: Iterable[Observation]) -> Set[str]:
    present: Set[str] = set()
    for obs in observations:
        present.add(obs.concept_id)
        present |= _concepts_present(obs.children)
    return present


def _resolve_concept(node: Mapping, value_doc: Optional[Mapping]) -> Optional[str]:
    for key in OWN_CONCEPT_KEYS:
        own = node.get(key)
        if isinstance(own, str) and own:
            return own
    if value_doc is not None:
        concept = concept_ref(value_doc.get("concept"))
        if concept is not None:
            return concept
    control = node.get("control")
    if isinstance(control, Mapping):
        return concept_ref(control.get("concept"))
    return None


def _first_present(*candidates: Any) -> Any:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


def _visit(
    node: Mapping,
    observations: List[Observation],
    present: Set[str],
    timestamp: str,
    config: FormsConfig,
) -> None:
    raw_value = node.get("value")
    value_doc = raw_value if isinstance(raw_value, Mapping) else None

    if value_doc is not None:
        has_no_value = is_empty_value(value_doc.get("value"))
        value_comment = value_doc.get("comment")
        value_interpretation = value_doc.get("interpretation")
    else:
        has_no_value = is_empty_value(raw_value)
        value_comment = value_interpretation = None

    comment = _first_present(node.get("comment"), value_comment)
    interpretation = _first_present(node.get("interpretation"), value_interpretation)
    concept_id = _resolve_concept(node, value_doc)

    if has_no_value and (comment or interpretation) and concept_id and concept_id not in present:
        observations.append(
            Observation(
                concept_id=concept_id,
                value=None,
                timestamp=timestamp,
                namespace=config.namespace,
                field_path=_first_present(*(node.get(key) for key in FIELD_PATH_KEYS)),
                comment=str(comment) if comment else None,
                interpretation=str(interpretation) if interpretation else None,
            )
        )
        present.add(concept_id)

    for child in child_documents(node):
        _visit(child, observations, present, timestamp, config)
