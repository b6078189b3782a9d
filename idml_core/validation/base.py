"""
Base Validation Classes
=======================

Result container and validator interface for structural checks on
package resources. Only XML well-formedness is checked; visual layout
is never validated.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Dict, Any
import logging

from idml_core.errors import FormatError

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """
    Container for validation results.

    Attributes:
        is_valid: Whether validation passed
        files_checked: Number of resources inspected
        error_count: Total number of errors
        warning_count: Total number of warnings
        errors: List of error dictionaries with keys:
            - resource: Package-relative resource name
            - line: Line number (optional)
            - column: Column number (optional)
            - type: Error type/category
            - message: Error description
            - severity: 'Error' or 'Warning'
    """
    is_valid: bool = True
    files_checked: int = 0
    error_count: int = 0
    warning_count: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def add_error(self,
                  resource: str,
                  message: str,
                  error_type: str = "XML Syntax Error",
                  line: Optional[int] = None,
                  column: Optional[int] = None,
                  severity: str = "Error") -> None:
        """
        Add an error to the result.

        Args:
            resource: Resource name
            message: Error description
            error_type: Error type/category
            line: Line number (optional)
            column: Column number (optional)
            severity: 'Error' or 'Warning'
        """
        self.errors.append({
            'resource': resource,
            'line': line,
            'column': column,
            'type': error_type,
            'message': message,
            'severity': severity,
        })

        if severity == "Error":
            self.error_count += 1
            self.is_valid = False
        else:
            self.warning_count += 1

    def merge(self, other: 'ValidationResult') -> None:
        """Merge another result into this one."""
        self.errors.extend(other.errors)
        self.files_checked += other.files_checked
        self.error_count += other.error_count
        self.warning_count += other.warning_count
        if not other.is_valid:
            self.is_valid = False

    def get_errors_by_resource(self) -> Dict[str, List[Dict]]:
        """Group errors by resource."""
        by_resource: Dict[str, List[Dict]] = {}
        for error in self.errors:
            by_resource.setdefault(error['resource'], []).append(error)
        return by_resource

    def raise_for_errors(self) -> None:
        """
        Raise FormatError describing the first error, if any.

        Raises:
            FormatError: If validation failed
        """
        if self.is_valid:
            return
        first = next(e for e in self.errors if e['severity'] == "Error")
        where = first['resource']
        if first['line'] is not None:
            where = f"{where}:{first['line']}"
        raise FormatError(f"Resource is not well-formed: {first['resource']}",
                          detail=f"{where}: {first['message']}")

    def summary(self) -> str:
        """Generate a text summary of validation results."""
        if self.is_valid:
            return f"Validation PASSED - {self.files_checked} resource(s) well-formed"

        lines = [
            f"Validation FAILED - {self.error_count} error(s), {self.warning_count} warning(s)",
            "",
            "Errors by resource:",
        ]
        for resource, resource_errors in sorted(self.get_errors_by_resource().items()):
            lines.append(f"  {resource}: {len(resource_errors)} error(s)")
            for error in resource_errors[:3]:
                lines.append(f"    - {error['message']}")

        return "\n".join(lines)


class BaseValidator(ABC):
    """
    Abstract base class for package validators.

    Example:
        class StoryCountValidator(BaseValidator):
            def validate_file(self, file_path, **kwargs):
                ...

            def validate_package(self, package_path, **kwargs):
                ...
    """

    @abstractmethod
    def validate_file(self, file_path: Path, **kwargs) -> ValidationResult:
        """
        Validate a single resource file.

        Args:
            file_path: Path to the file to validate
            **kwargs: Additional validation options

        Returns:
            ValidationResult with validation outcome
        """
        pass

    @abstractmethod
    def validate_package(self, package_path: Path, **kwargs) -> ValidationResult:
        """
        Validate a package (archive or extracted directory).

        Args:
            package_path: Path to the package
            **kwargs: Additional validation options

        Returns:
            ValidationResult with validation outcome
        """
        pass

    def validate_bytes(self, data: bytes, resource: str = "bytes") -> ValidationResult:
        """Validate an in-memory resource (optional to implement)."""
        raise NotImplementedError("In-memory validation not supported by this validator")
