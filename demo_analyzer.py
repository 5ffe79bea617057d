"""
Demo: Analyze the example Vitals form, run it through the save pipeline,
and export the persisted observations.
"""

import logging

from formobs.analyzer import analyze_form_definition
from formobs.examples import build_vitals_controls, build_vitals_form, build_vitals_form_state
from formobs.form_decoder import observations_to_form
from formobs.form_encoder import form_to_observations
from formobs.save import prepare_save
from formobs.serialization import observations_to_yaml


def print_report(report):
    """Pretty-print a FormReport."""
    print()
    print("=" * 70)
    print(f"FORM ANALYSIS REPORT: {report.form_name}")
    print("=" * 70)
    print()

    print("📊 BASIC METRICS")
    print(f"  Total Controls:        {report.total_controls}")
    print(f"  Max Nesting Depth:     {report.max_depth}")
    print(f"  Bound Concepts:        {len(report.bindings)}")
    print(f"  Save Script:           {'YES' if report.has_save_script else 'NO'}")
    print()

    print("🔗 CONCEPT BINDINGS")
    for concept, datatypes in report.bindings.items():
        print(f"    {concept}: {', '.join(datatypes) if datatypes else '-'}")
    if report.controls_without_concept:
        print(f"  Structural Controls:   {report.controls_without_concept}")
    print()

    if report.warnings:
        print("⚠️  WARNINGS")
        for i, warning in enumerate(report.warnings, 1):
            print(f"  {i}. {warning}")
    else:
        print("✨ NO WARNINGS - Form looks clean!")
    print()


def pass_through_executor(form_state, script, patient):
    """Stand-in for a sandboxed script interpreter: keeps the observations."""
    print(f"  Running save script for patient {patient['uuid']}: {script!r}")
    return None


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    form = build_vitals_form(save_script="return observations;")
    print_report(analyze_form_definition(form))

    observations = form_to_observations(build_vitals_controls(), form)
    print(f"📝 Encoded {len(observations)} observations")

    outcome = prepare_save(
        form,
        observations,
        "patient-1",
        pass_through_executor,
        form_state=build_vitals_form_state(),
    )
    if not outcome.ok:
        print(f"❌ Save stopped: {outcome.state.value} {outcome.message or ''}")
        raise SystemExit(1)
    print(f"✅ Ready to persist {len(outcome.observations)} observations")

    tree = observations_to_form(outcome.observations, form)
    print(f"🔁 Reloaded {len(tree.controls)} controls for editing")

    with open("example_observations_output.yaml", "w") as f:
        f.write(observations_to_yaml(outcome.observations))
    print("✅ Observations exported to example_observations_output.yaml")
