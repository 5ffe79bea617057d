"""
Serialization helpers for formobs objects (Observation, ControlNode,
FormDefinition, answer values).

Provides the wire dict shape persisted with encounters plus JSON/YAML text
round-trips via that intermediate dict representation.

Wire shape of an observation:

    {"concept": {"uuid": "...", "datatype": "..."},
     "value": ...,                       # coded answers: {"uuid", "display"}
     "obsDatetime": "2024-01-15T10:30:00.000Z",
     "formNamespace": "Bahmni",
     "formFieldPath": "...",
     "comment": "...",                   # optional
     "interpretation": "...",            # optional
     "groupMembers": [...]}              # optional
"""
from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

import yaml

from formobs.config import DEFAULT_CONFIG, FormsConfig
from formobs.model import (
    CodedAnswer,
    ComplexValue,
    ControlKind,
    ControlNode,
    ControlTree,
    FormDefinition,
    Observation,
)
from formobs.values import SCALAR_TYPES, current_timestamp, format_timestamp

logger = logging.getLogger(__name__)


class FormDefinitionError(Exception):
    """Raised when a form definition document cannot be decoded."""
    pass


def coded_answer_to_dict(a: CodedAnswer) -> Dict[str, Any]:
    d: Dict[str, Any] = {"uuid": a.id}
    if a.display_text is not None:
        d["display"] = a.display_text
    return d


def coded_answer_from_dict(d: Mapping[str, Any]) -> CodedAnswer:
    return CodedAnswer(id=d["uuid"], display_text=d.get("display"))


def complex_value_to_dict(v: ComplexValue) -> Dict[str, Any]:
    d: Dict[str, Any] = dict(v.extra)
    d["url"] = v.url
    if v.file_name is not None:
        d["fileName"] = v.file_name
    if v.file_size is not None:
        d["fileSize"] = v.file_size
    if v.content_type is not None:
        d["contentType"] = v.content_type
    return d


def complex_value_from_dict(d: Mapping[str, Any]) -> ComplexValue:
    known = {"url", "fileName", "fileSize", "contentType"}
    return ComplexValue(
        url=d["url"],
        file_name=d.get("fileName"),
        file_size=d.get("fileSize"),
        content_type=d.get("contentType"),
        extra={k: v for k, v in d.items() if k not in known},
    )


def value_to_wire(value: Any) -> Any:
    if isinstance(value, CodedAnswer):
        return coded_answer_to_dict(value)
    if isinstance(value, ComplexValue):
        return complex_value_to_dict(value)
    if isinstance(value, date):
        return format_timestamp(value)
    if isinstance(value, (list, tuple)):
        return [value_to_wire(v) for v in value]
    return value


def value_from_wire(value: Any) -> Any:
    if isinstance(value, Mapping):
        if "uuid" in value:
            return coded_answer_from_dict(value)
        if "url" in value:
            return complex_value_from_dict(value)
        return dict(value)
    if isinstance(value, list):
        return [value_from_wire(v) for v in value]
    return value


def observation_to_dict(o: Observation) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "concept": {"uuid": o.concept_id, "datatype": o.datatype},
        "value": value_to_wire(o.value),
        "obsDatetime": o.timestamp,
        "formNamespace": o.namespace,
        "formFieldPath": o.field_path,
    }
    if o.comment:
        d["comment"] = o.comment
    if o.interpretation:
        d["interpretation"] = o.interpretation
    if o.children:
        d["groupMembers"] = [observation_to_dict(c) for c in o.children]
    return d


def _wire_scalar_or_object(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, SCALAR_TYPES):
        return value
    if isinstance(value, (Mapping, list)):
        return value_from_wire(value)
    return None


def observation_from_dict(
    d: Mapping[str, Any],
    default_timestamp: Optional[str] = None,
    config: FormsConfig = DEFAULT_CONFIG,
) -> Observation:
    """
    Build an Observation from a wire or raw container dict.

    Lenient: the concept may be a mapping or a bare id string, the
    timestamp may sit under "obsDatetime" or "observationDateTime", and
    non-string notes are dropped.
    """
    concept = d.get("concept")
    if isinstance(concept, Mapping):
        concept_id = concept.get("uuid")
        datatype = concept.get("datatype")
    else:
        concept_id = concept
        datatype = None

    timestamp = d.get("obsDatetime", d.get("observationDateTime"))
    if not isinstance(timestamp, str):
        timestamp = default_timestamp if default_timestamp is not None else current_timestamp()

    namespace = d.get("formNamespace")
    field_path = d.get("formFieldPath")
    comment = d.get("comment")
    interpretation = d.get("interpretation")
    members = d.get("groupMembers")

    return Observation(
        concept_id=concept_id,
        value=_wire_scalar_or_object(d.get("value")),
        datatype=datatype,
        timestamp=timestamp,
        namespace=namespace if isinstance(namespace, str) else config.namespace,
        field_path=field_path if isinstance(field_path, str) else None,
        comment=comment if isinstance(comment, str) and comment else None,
        interpretation=interpretation if isinstance(interpretation, str) and interpretation else None,
        children=[
            observation_from_dict(m, default_timestamp=timestamp, config=config)
            for m in members
            if isinstance(m, Mapping)
        ] if isinstance(members, list) else [],
    )


def observations_from_container(
    raw: Optional[List[Mapping[str, Any]]],
    now: Optional[Any] = None,
    config: FormsConfig = DEFAULT_CONFIG,
) -> List[Observation]:
    """Normalize raw observations reported by the form container UI."""
    if not raw:
        return []
    timestamp = current_timestamp(now)
    return [observation_from_dict(d, default_timestamp=timestamp, config=config) for d in raw]


def observations_to_json(observations: List[Observation]) -> str:
    return json.dumps([observation_to_dict(o) for o in observations], sort_keys=True)


def observations_from_json(s: str) -> List[Observation]:
    return [observation_from_dict(d) for d in json.loads(s)]


def observations_to_yaml(observations: List[Observation]) -> str:
    return yaml.safe_dump([observation_to_dict(o) for o in observations])


def observations_from_yaml(s: str) -> List[Observation]:
    return [observation_from_dict(d) for d in yaml.safe_load(s) or []]


def control_to_dict(c: ControlNode) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "id": c.id,
        "conceptUuid": c.concept_id,
        "type": c.kind.value,
        "value": value_to_wire(c.value),
    }
    for key, value in (
        ("label", c.label),
        ("units", c.units),
        ("interpretation", c.interpretation),
        ("comment", c.comment),
    ):
        if value is not None:
            d[key] = value
    if c.children:
        d["groupMembers"] = [control_to_dict(m) for m in c.children]
    return d


def control_from_dict(d: Mapping[str, Any]) -> ControlNode:
    return ControlNode(
        id=d["id"],
        concept_id=d.get("conceptUuid", ""),
        kind=ControlKind(d.get("type", ControlKind.OBS_CONTROL.value)),
        value=value_from_wire(d.get("value")),
        label=d.get("label"),
        units=d.get("units"),
        interpretation=d.get("interpretation"),
        comment=d.get("comment"),
        children=[control_from_dict(m) for m in d.get("groupMembers", [])],
    )


def tree_to_dict(t: ControlTree) -> Dict[str, Any]:
    return {"controls": [control_to_dict(c) for c in t.controls]}


def tree_from_dict(d: Mapping[str, Any]) -> ControlTree:
    return ControlTree(controls=[control_from_dict(c) for c in d.get("controls", [])])


def form_definition_to_dict(f: FormDefinition) -> Dict[str, Any]:
    return {
        "uuid": f.id,
        "name": f.name,
        "version": f.version,
        "published": f.published,
        "schema": f.schema,
    }


def form_definition_from_dict(d: Mapping[str, Any]) -> FormDefinition:
    return FormDefinition(
        id=d["uuid"],
        name=d.get("name", ""),
        version=str(d.get("version", "1")),
        published=bool(d.get("published", False)),
        schema=d.get("schema"),
    )


def form_definition_from_api(response: Mapping[str, Any]) -> FormDefinition:
    """
    Parse a form-metadata API response into a FormDefinition.

    The schema arrives JSON-encoded in response["resources"][0]["value"].

    Raises:
        FormDefinitionError: If there are no resources or the schema is
            not valid JSON
    """
    form_id = response.get("uuid")
    resources = response.get("resources")
    if not resources:
        raise FormDefinitionError(f"No resources found for form {form_id}")
    if len(resources) > 1:
        logger.debug("Form %s has %d resources; using the first", form_id, len(resources))

    try:
        schema = json.loads(resources[0]["value"])
    except (KeyError, TypeError, ValueError) as e:
        raise FormDefinitionError(f"Invalid schema resource for form {form_id}: {e}") from e

    return FormDefinition(
        id=form_id,
        name=response.get("name", ""),
        version=str(response.get("version", "1")),
        published=bool(response.get("published", False)),
        schema=schema,
    )


def form_definition_to_json(f: FormDefinition) -> str:
    return json.dumps(form_definition_to_dict(f), sort_keys=True)


def form_definition_from_json(s: str) -> FormDefinition:
    return form_definition_from_dict(json.loads(s))


def form_definition_to_yaml(f: FormDefinition) -> str:
    return yaml.safe_dump(form_definition_to_dict(f))


def form_definition_from_yaml(s: str) -> FormDefinition:
    return form_definition_from_dict(yaml.safe_load(s))


def load_form_definition(filepath: str) -> FormDefinition:
    """
    Load a FormDefinition from a .json or .yaml/.yml file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        FormDefinitionError: If the document can't be decoded
    """
    with open(filepath, "r", encoding="utf-8") as f:
        content = f.read()
    try:
        if filepath.endswith(".json"):
            return form_definition_from_json(content)
        return form_definition_from_yaml(content)
    except (KeyError, TypeError, ValueError, yaml.YAMLError) as e:
        raise FormDefinitionError(f"Cannot load form definition from {filepath}: {e}") from e
