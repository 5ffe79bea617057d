"""
Form Definition Analyzer: inventory and diagnostics of form schemas.

This module provides lightweight analysis of FormDefinition objects:
    - Concept binding inventory (concept -> declared datatypes)
    - Conflicting bindings (one concept, several datatypes)
    - Controls that bind no concept
    - Save script presence
    - Warning flags for transform risk

IMPORTANT: This module is read-only. It does NOT change resolution.
The resolver still returns the first match for a conflicting concept;
this report is where such schemas get noticed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Set

from formobs.config import DEFAULT_CONFIG, FormsConfig
from formobs.documents import child_documents, concept_ref
from formobs.model import FormDefinition
from formobs.scripting import find_save_script


@dataclass
class FormReport:
    """Analysis report for one form definition."""

    form_name: str
    total_controls: int = 0
    max_depth: int = 0

    # Concept bindings, in first-seen order
    bindings: Dict[str, List[str]] = field(default_factory=dict)
    concepts_without_datatype: Set[str] = field(default_factory=set)
    conflicting_concepts: Set[str] = field(default_factory=set)
    controls_without_concept: List[str] = field(default_factory=list)

    has_save_script: bool = False

    warnings: List[str] = field(default_factory=list)

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)


def _walk(controls: List[Mapping], depth: int, report: FormReport) -> None:
    for index, control in enumerate(controls):
        report.total_controls += 1
        report.max_depth = max(report.max_depth, depth)

        concept = control.get("concept")
        concept_id = concept_ref(concept)
        if concept_id is None:
            label = control.get("id", f"#{index}@{depth}")
            report.controls_without_concept.append(str(label))
        else:
            datatypes = report.bindings.setdefault(concept_id, [])
            datatype = concept.get("datatype")
            if isinstance(datatype, str):
                if datatype not in datatypes:
                    datatypes.append(datatype)
            else:
                report.concepts_without_datatype.add(concept_id)

        _walk(child_documents(control, "controls"), depth + 1, report)


def analyze_form_definition(
    form_definition: FormDefinition,
    config: FormsConfig = DEFAULT_CONFIG,
) -> FormReport:
    """
    Perform analysis of a FormDefinition's schema.

    Malformed schemas produce an empty report with a warning, never an
    exception.
    """
    report = FormReport(form_name=form_definition.name)
    schema = form_definition.schema

    controls = child_documents(schema, "controls")
    if not controls:
        report.add_warning("Schema declares no controls")

    _walk(controls, 1, report)

    report.conflicting_concepts = {
        concept for concept, datatypes in report.bindings.items() if len(datatypes) > 1
    }
    # a concept declared with a datatype somewhere is resolvable
    report.concepts_without_datatype = {
        concept for concept in report.concepts_without_datatype if not report.bindings.get(concept)
    }

    report.has_save_script = find_save_script(form_definition, config) is not None

    if report.conflicting_concepts:
        report.add_warning(
            f"Concepts bound to more than one datatype (first match wins): "
            f"{', '.join(sorted(report.conflicting_concepts))}"
        )

    if report.concepts_without_datatype:
        report.add_warning(
            f"Concepts without a declared datatype: "
            f"{', '.join(sorted(report.concepts_without_datatype))}"
        )

    return report
