"""
Validation Framework
====================

Structural validation of package resources.

Components:
- BaseValidator: Abstract base class for all validators
- ValidationResult: Container for validation results
- WellFormednessValidator: XML well-formedness checks for files and packages
"""

from idml_core.validation.base import (
    BaseValidator,
    ValidationResult,
)

from idml_core.validation.wellformed import (
    WellFormednessValidator,
)

__all__ = [
    "BaseValidator",
    "ValidationResult",
    "WellFormednessValidator",
]
