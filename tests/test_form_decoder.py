"""
Tests for the Observation -> Form transformer.
"""

from datetime import datetime, timezone

from formobs.examples import (
    BLOOD_PRESSURE,
    SYMPTOMS,
    TEMPERATURE,
    build_vitals_controls,
    build_vitals_form,
)
from formobs.form_decoder import observations_to_form
from formobs.form_encoder import form_to_observations
from formobs.model import CodedAnswer, ControlKind, Observation


NOW = "2024-01-15T10:30:00.000Z"


def obs(concept_id, value, field_path=None, **kwargs):
    return Observation(concept_id=concept_id, value=value, timestamp=NOW, field_path=field_path, **kwargs)


class TestEmptyInput:
    """Test the empty edge case."""

    def test_empty_list(self):
        """No observations yields an empty tree with empty metadata."""
        tree = observations_to_form([], build_vitals_form())
        assert tree.controls == []
        assert tree.metadata == {}


class TestSingleObservations:
    """Test one observation per key."""

    def test_generic_control(self):
        """Each distinct key becomes a generic control."""
        tree = observations_to_form([obs(TEMPERATURE, 37.5, "Vitals.1/1-0")], build_vitals_form())
        [control] = tree.controls
        assert control.id == "Vitals.1/1-0"
        assert control.concept_id == TEMPERATURE
        assert control.kind == ControlKind.OBS_CONTROL
        assert control.value == 37.5

    def test_metadata_holds_form(self):
        """The form definition is kept in the tree metadata."""
        form = build_vitals_form()
        tree = observations_to_form([obs(TEMPERATURE, 1)], form)
        assert tree.metadata["form_definition"] is form

    def test_key_falls_back_to_concept(self):
        """Without a field path the concept id is the control id."""
        tree = observations_to_form([obs(TEMPERATURE, 1)], build_vitals_form())
        assert tree.controls[0].id == TEMPERATURE

    def test_notes_copied(self):
        """Interpretation and comment are copied to the control."""
        tree = observations_to_form(
            [obs(TEMPERATURE, 40, "t", interpretation="ABNORMAL", comment="High")],
            build_vitals_form(),
        )
        assert tree.controls[0].interpretation == "ABNORMAL"
        assert tree.controls[0].comment == "High"

    def test_first_seen_order(self):
        """Controls appear in first-seen order."""
        tree = observations_to_form([obs("c-b", 1, "b"), obs("c-a", 2, "a")], build_vitals_form())
        assert [control.id for control in tree.controls] == ["b", "a"]


class TestValueCoercion:
    """Test datetime coercion of wire values."""

    def test_datetime_string_coerced(self):
        """Strings matching the datetime pattern become datetimes."""
        tree = observations_to_form([obs("c-d", "2024-01-15T10:30:00.000Z", "d")], build_vitals_form())
        assert tree.controls[0].value == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_date_only_string_kept(self):
        """A date-only string is not coerced."""
        tree = observations_to_form([obs("c-d", "2024-01-15", "d")], build_vitals_form())
        assert tree.controls[0].value == "2024-01-15"


class TestMultiselectMerge:
    """Test merging repeated keys."""

    def test_three_observations_merge(self):
        """Three observations sharing a key merge into one multiselect control."""
        tree = observations_to_form(
            [obs(SYMPTOMS, "a", "symptoms"), obs(SYMPTOMS, "b", "symptoms"), obs(SYMPTOMS, "c", "symptoms")],
            build_vitals_form(),
        )
        [control] = tree.controls
        assert control.kind == ControlKind.MULTISELECT
        assert control.value == ["a", "b", "c"]

    def test_merge_preserves_other_controls(self):
        """Interleaved keys still merge in place."""
        tree = observations_to_form(
            [obs(SYMPTOMS, "a", "s"), obs(TEMPERATURE, 37, "t"), obs(SYMPTOMS, "b", "s")],
            build_vitals_form(),
        )
        assert [control.id for control in tree.controls] == ["s", "t"]
        assert tree.controls[0].value == ["a", "b"]

    def test_merge_coerces_every_value(self):
        """Every merged value is coerced, not only the first."""
        tree = observations_to_form(
            [obs("c-d", "2024-01-15T10:30:00Z", "d"), obs("c-d", "2024-01-16T10:30:00Z", "d")],
            build_vitals_form(),
        )
        assert all(isinstance(value, datetime) for value in tree.controls[0].value)

    def test_merge_last_note_wins(self):
        """Notes on later observations overwrite earlier ones."""
        tree = observations_to_form(
            [obs(SYMPTOMS, "a", "s", comment="first"), obs(SYMPTOMS, "b", "s", comment="second")],
            build_vitals_form(),
        )
        assert tree.controls[0].comment == "second"

    def test_shared_concept_collapses(self):
        """Observations without field paths sharing a concept collapse."""
        tree = observations_to_form([obs(TEMPERATURE, 37), obs(TEMPERATURE, 38)], build_vitals_form())
        assert len(tree.controls) == 1
        assert tree.controls[0].value == [37, 38]


class TestGroups:
    """Test group reconstruction."""

    def test_group_children_decoded(self):
        """Group observations become group controls with decoded members."""
        group = obs(BLOOD_PRESSURE, None, "bp", children=[obs("c-s", 120, "s"), obs("c-d", 80, "d")])
        tree = observations_to_form([group], build_vitals_form())
        [control] = tree.controls
        assert control.kind == ControlKind.GROUP
        assert control.value is None
        assert [child.value for child in control.children] == [120, 80]

    def test_repeated_group_key_merges_members(self):
        """Group observations sharing a key stay one group holding every member."""
        first = obs(BLOOD_PRESSURE, None, "bp", children=[obs("c-s", 120, "s")])
        second = obs(BLOOD_PRESSURE, None, "bp", children=[obs("c-d", 80, "d")], comment="rechecked")
        tree = observations_to_form([first, second], build_vitals_form())
        [control] = tree.controls
        assert control.kind == ControlKind.GROUP
        assert control.value is None
        assert control.comment == "rechecked"
        assert [child.id for child in control.children] == ["s", "d"]
        assert [child.value for child in control.children] == [120, 80]


class TestRoundTrip:
    """Test encode followed by decode."""

    def test_field_path_value_pairs_recovered(self):
        """Decoding the encoder's output recovers (field path, value) pairs."""
        form = build_vitals_form()
        observations = form_to_observations(build_vitals_controls(), form, now=NOW)
        tree = observations_to_form(observations, form)
        pairs = {control.id: control.value for control in tree.controls}
        assert pairs["Vitals.1/1-0"] == 37.5
        assert pairs["Vitals.1/2-0"] == [CodedAnswer("a-cough", "Cough"), CodedAnswer("a-fever", "Fever")]
        assert pairs["Vitals.1/8-0"] == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert {child.id: child.value for child in tree.get_control("Vitals.1/3-0").children} == {
            "Vitals.1/4-0": 120,
            "Vitals.1/5-0": 80,
        }
