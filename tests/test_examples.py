"""
Test the example Vitals form and its matching control tree and form state.

Validates that the builders stay consistent with each other: every bound
control in the tree resolves against the schema, and the end-to-end save
flow produces the expected observations.
"""

from formobs import form_to_observations, observations_to_form, prepare_save
from formobs.examples import (
    NOTES,
    SYMPTOMS,
    build_vitals_controls,
    build_vitals_form,
    build_vitals_form_state,
    field_path,
)
from formobs.resolver import resolve_datatype


def test_field_path_format():
    assert field_path("Vitals", "3") == "Vitals.1/3-0"
    assert field_path("Vitals", "3", version="2") == "Vitals.2/3-0"


def test_vitals_form_structure():
    form = build_vitals_form()
    assert form.published
    assert len(form.schema["controls"]) == 5
    assert "events" not in form.schema
    assert build_vitals_form("x").schema["events"] == {"onFormSave": "x"}


def test_every_bound_control_resolves():
    form = build_vitals_form()

    def walk(controls):
        for control in controls:
            if control.concept_id:
                assert resolve_datatype(form.schema, control.concept_id) is not None, control.id
            walk(control.children)

    walk(build_vitals_controls().controls)


def test_end_to_end_save_and_reload():
    """Encode, save with notes and a pass-through script, then decode for editing."""
    form = build_vitals_form("return observations;")
    observations = form_to_observations(build_vitals_controls(), form)

    outcome = prepare_save(form, observations, "patient-1", lambda state, script, patient: None,
                           form_state=build_vitals_form_state())
    assert outcome.ok

    tree = observations_to_form(outcome.observations, form)
    symptoms = [control for control in tree.controls if control.concept_id == SYMPTOMS]
    assert len(symptoms) == 1
    assert len(symptoms[0].value) == 2

    notes = [control for control in tree.controls if control.concept_id == NOTES]
    assert notes[0].comment == "Patient anxious"
    assert notes[0].value is None
