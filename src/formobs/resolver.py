"""
Concept Datatype Resolver.

Finds the datatype a form schema declares for a concept. The schema is an
opaque document; see formobs.documents for the structural walk.

Policy: first match wins. A schema binding one concept to two datatypes is
not rejected here (see formobs.analyzer for detection).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from formobs.documents import iter_concept_bindings

logger = logging.getLogger(__name__)


def resolve_datatype(schema: Any, concept_id: str) -> Optional[str]:
    """
    Resolve the declared datatype bound to concept_id.

    Args:
        schema: Form schema document (normally FormDefinition.schema)
        concept_id: Concept identifier to look up

    Returns:
        The datatype string of the first matching control that declares
        one, or None. Malformed or foreign documents yield None.
    """
    if not concept_id:
        return None
    for bound_concept, datatype, _control in iter_concept_bindings(schema):
        if bound_concept == concept_id and datatype is not None:
            return datatype
    logger.debug("No datatype declared for concept %s", concept_id)
    return None
