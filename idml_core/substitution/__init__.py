"""
Content Substitution
====================

Rewriting story and spread resources with mapped content.
"""

from idml_core.substitution.engine import (
    SubstitutionEngine,
    SubstitutionResult,
    replace_text,
    relink_frame,
)

__all__ = [
    "SubstitutionEngine",
    "SubstitutionResult",
    "replace_text",
    "relink_frame",
]
