"""
Example form builder.

Builds a small "Vitals" form definition and a matching control tree
covering every transform path: numeric value with interpretation,
multiselect coded answers, an observation group, a structural section,
a value-less field with a comment, and a datetime.
"""
from datetime import datetime, timezone
from typing import Optional

from formobs.model import CodedAnswer, ControlKind, ControlNode, ControlTree, FormDefinition


TEMPERATURE = "c-temperature"
SYMPTOMS = "c-symptoms"
BLOOD_PRESSURE = "c-blood-pressure"
SYSTOLIC = "c-systolic"
DIASTOLIC = "c-diastolic"
NOTES = "c-notes"
RECORDED_AT = "c-recorded-at"


def field_path(form_name: str, control_id: str, version: str = "1") -> str:
    return f"{form_name}.{version}/{control_id}-0"


def build_vitals_form(save_script: Optional[object] = None) -> FormDefinition:
    schema = {
        "name": "Vitals",
        "controls": [
            {"id": "1", "type": "obsControl",
             "concept": {"uuid": TEMPERATURE, "name": "Temperature", "datatype": "Numeric"}},
            {"id": "2", "type": "obsControl",
             "concept": {"uuid": SYMPTOMS, "name": "Symptoms", "datatype": "Coded"}},
            {"id": "3", "type": "obsGroupControl",
             "concept": {"uuid": BLOOD_PRESSURE, "name": "Blood Pressure", "datatype": "N/A"},
             "controls": [
                 {"id": "4", "type": "obsControl",
                  "concept": {"uuid": SYSTOLIC, "name": "Systolic", "datatype": "Numeric"}},
                 {"id": "5", "type": "obsControl",
                  "concept": {"uuid": DIASTOLIC, "name": "Diastolic", "datatype": "Numeric"}},
             ]},
            {"id": "6", "type": "section", "label": {"value": "Remarks"},
             "controls": [
                 {"id": "7", "type": "obsControl",
                  "concept": {"uuid": NOTES, "name": "Notes", "datatype": "Text"}},
             ]},
            {"id": "8", "type": "obsControl",
             "concept": {"uuid": RECORDED_AT, "name": "Recorded At", "datatype": "Datetime"}},
        ],
    }
    if save_script is not None:
        schema["events"] = {"onFormSave": save_script}

    return FormDefinition(id="form-vitals", name="Vitals", version="1", published=True, schema=schema)


def _vitals_path(control_id: str) -> str:
    return field_path("Vitals", control_id)


def build_vitals_controls() -> ControlTree:
    return ControlTree(controls=[
        ControlNode(id=_vitals_path("1"), concept_id=TEMPERATURE, kind=ControlKind.NUMBER,
                    value=37.5, label="Temperature", units="C", interpretation="N"),
        ControlNode(id=_vitals_path("2"), concept_id=SYMPTOMS, kind=ControlKind.MULTISELECT,
                    value=[CodedAnswer("a-cough", "Cough"), CodedAnswer("a-fever", "Fever")]),
        ControlNode(id=_vitals_path("3"), concept_id=BLOOD_PRESSURE, kind=ControlKind.GROUP, children=[
            ControlNode(id=_vitals_path("4"), concept_id=SYSTOLIC, kind=ControlKind.NUMBER, value=120),
            ControlNode(id=_vitals_path("5"), concept_id=DIASTOLIC, kind=ControlKind.NUMBER, value=80),
        ]),
        ControlNode(id=_vitals_path("6"), concept_id="", kind=ControlKind.SECTION, label="Remarks"),
        ControlNode(id=_vitals_path("7"), concept_id=NOTES, kind=ControlKind.TEXT, comment="Patient anxious"),
        ControlNode(id=_vitals_path("8"), concept_id=RECORDED_AT, kind=ControlKind.DATETIME,
                    value=datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)),
    ])


def build_vitals_form_state() -> dict:
    """Submitted form state for the same form, as reported by the UI container."""
    return {
        "children": [
            {"id": "1", "formFieldPath": field_path("Vitals", "1"),
             "control": {"concept": {"uuid": TEMPERATURE}},
             "value": {"value": 37.5, "comment": None, "interpretation": "N"}},
            {"id": "6", "control": {"label": {"value": "Remarks"}}, "children": [
                {"id": "7", "formFieldPath": field_path("Vitals", "7"),
                 "control": {"concept": {"uuid": NOTES}},
                 "value": {"value": None, "comment": "Patient anxious"}},
            ]},
        ],
    }
