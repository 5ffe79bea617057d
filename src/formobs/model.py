"""
Core Form / Observation Model Objects

Defines the fundamental data structures exchanged by the transforms:
    - FormDefinition (read-only form metadata + schema document)
    - ControlNode / ControlTree (what the data-entry UI manipulates)
    - Observation (what is persisted with the encounter)
    - CodedAnswer / ComplexValue (structured answer values)

ARCHITECTURAL RULE:
    These objects:
        - Know nothing about HTTP, persistence or script execution
        - Carry data only, no transform behavior
        - Are serializable (see formobs.serialization)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from formobs.config import DEFAULT_NAMESPACE


class ControlKind(Enum):
    """
    Kinds of form controls.

    OBS_CONTROL is the generic kind produced when a control is rebuilt
    from observations and its original widget type is unknown.
    """

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    DATETIME = "datetime"
    SELECT = "select"
    MULTISELECT = "multiselect"
    SECTION = "section"
    GROUP = "group"
    OBS_CONTROL = "obsControl"


@dataclass(frozen=True)
class CodedAnswer:
    """
    Reference to a terminology concept used as an answer value.

    Opaque to the transforms: never inspected, only carried.

    Properties:
        id: Concept identifier of the answer
        display_text: Human-readable name (optional)
    """

    id: str
    display_text: Optional[str] = None


@dataclass(frozen=True)
class ComplexValue:
    """
    Attachment value (image, document, ...).

    Only `url` survives the trip to the wire; the rest is UI metadata.
    """

    url: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    content_type: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class FormDefinition:
    """
    Read-only form metadata plus its schema document.

    Properties:
        id: Form identifier
        name: Display name (used in error messages)
        version: Form version string
        published: Whether this version is published
        schema:
            Arbitrarily nested document binding concepts to control
            definitions, e.g.
                {"controls": [{"concept": {"uuid": "c1", "datatype": "Numeric"}}],
                 "events": {"onFormSave": "..."}}
            Never validated; consumers match on its structure.
    """

    id: str
    name: str
    version: str = "1"
    published: bool = False
    schema: Any = None


@dataclass
class ControlNode:
    """
    One field/widget of the in-memory form-editing tree.

    Properties:
        id: Field path; the correlation key with emitted observations
        concept_id: Concept the field records (empty for structural sections)
        kind: ControlKind
        value:
            Raw captured value: scalar, date/datetime, CodedAnswer,
            list of CodedAnswer (multiselect), ComplexValue, or None
        children: Member controls, non-empty only for groups

    INVARIANT:
        A SECTION with an empty concept_id is a label, never an observation.
    """

    id: str
    concept_id: str
    kind: ControlKind = ControlKind.TEXT
    value: Any = None
    label: Optional[str] = None
    units: Optional[str] = None
    interpretation: Optional[str] = None
    comment: Optional[str] = None
    children: List["ControlNode"] = field(default_factory=list)

    @property
    def is_group(self) -> bool:
        return bool(self.children)


@dataclass
class ControlTree:
    """Top-level controls of a form plus free-form metadata."""

    controls: List[ControlNode] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_control(self, control_id: str) -> Optional[ControlNode]:
        """
        Retrieve a top-level control by id.

        Returns:
            ControlNode or None if not found
        """
        for control in self.controls:
            if control.id == control_id:
                return control
        return None


@dataclass
class Observation:
    """
    Flat, persisted record of one captured clinical data point.

    Properties:
        concept_id: Concept this observation records
        value:
            Wire value (scalar, timestamp string, CodedAnswer, URL string)
            or None for group parents and notes-only observations
        datatype: Concept datatype resolved from the form schema (optional)
        timestamp: Canonical timestamp string of the capture
        namespace: Form namespace
        field_path: Id of the control this came from; falls back to
            concept_id when absent (lossy if two fields share a concept)
        children: Member observations of a group

    A group parent has value None and non-empty children.
    """

    concept_id: str
    value: Any = None
    datatype: Optional[str] = None
    timestamp: Optional[str] = None
    namespace: str = DEFAULT_NAMESPACE
    field_path: Optional[str] = None
    comment: Optional[str] = None
    interpretation: Optional[str] = None
    children: List["Observation"] = field(default_factory=list)

    @property
    def is_group(self) -> bool:
        return self.value is None and bool(self.children)

    @property
    def key(self) -> str:
        """Correlation key: field_path, else concept_id."""
        return self.field_path if self.field_path is not None else self.concept_id
