"""
Structural helpers over generic documents.

Form schemas and submitted form state arrive as untyped, nested
dict/list documents whose shape evolves independently of this code.
Consumers never reflect over concrete classes; they match structure:

    - "is this a mapping with a concept reference?"
    - "does this node hold an empty value?"
    - "walk every control definition in pre-order"

Malformed input is never an error here. Anything that does not match
the expected structure is treated as "not found".
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Optional, Tuple


CONCEPT_ID_KEYS = ("uuid", "id")


def concept_ref(doc: Any) -> Optional[str]:
    """
    Return the concept identifier held by a concept document.

    Accepts {"uuid": ...} (form schema shape) or {"id": ...}.
    """
    if not isinstance(doc, Mapping):
        return None
    for key in CONCEPT_ID_KEYS:
        value = doc.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def is_empty_value(value: Any) -> bool:
    """None and the empty string count as "no value"."""
    return value is None or value == ""


def child_documents(doc: Any, key: str = "children") -> list:
    """Return doc[key] when it is a list of mappings, skipping other entries."""
    if not isinstance(doc, Mapping):
        return []
    children = doc.get(key)
    if not isinstance(children, list):
        return []
    return [child for child in children if isinstance(child, Mapping)]


def iter_concept_bindings(schema: Any) -> Iterator[Tuple[str, Optional[str], Mapping]]:
    """
    Walk schema["controls"] depth-first, pre-order.

    Yields (concept_id, datatype, control) for every control definition
    that binds a concept. datatype is None when the control declares none.
    A control is visited before its nested "controls".
    """
    yield from _iter_controls(child_documents(schema, "controls"))


def _iter_controls(controls: list) -> Iterator[Tuple[str, Optional[str], Mapping]]:
    for control in controls:
        concept = control.get("concept")
        concept_id = concept_ref(concept)
        if concept_id is not None:
            datatype = concept.get("datatype")
            yield concept_id, datatype if isinstance(datatype, str) else None, control
        yield from _iter_controls(child_documents(control, "controls"))
