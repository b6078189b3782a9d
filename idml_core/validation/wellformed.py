"""
Well-Formedness Validator
=========================

Checks that package XML resources parse, which is the hard output
invariant for every story rewritten during an export.
"""

import zipfile
from pathlib import Path
from typing import List, Optional
import logging

from lxml import etree

from idml_core.validation.base import BaseValidator, ValidationResult
from idml_core.xml.utils import make_parser

logger = logging.getLogger(__name__)


class WellFormednessValidator(BaseValidator):
    """
    XML well-formedness validator for package resources.

    Example:
        validator = WellFormednessValidator()
        result = validator.validate_file(package_root / "Stories" / "Story_u1d8.xml")
        result.raise_for_errors()
    """

    def __init__(self, suffixes: Optional[List[str]] = None):
        """
        Args:
            suffixes: File suffixes treated as XML resources (default: .xml)
        """
        self.suffixes = [s.lower() for s in (suffixes or ['.xml'])]

    def validate_file(self, file_path: Path, **kwargs) -> ValidationResult:
        """
        Validate a single XML file.

        Args:
            file_path: Path to XML file
            **kwargs: resource (name to report instead of the file name)

        Returns:
            ValidationResult with validation outcome
        """
        resource = kwargs.get('resource', file_path.name)
        try:
            data = file_path.read_bytes()
        except OSError as e:
            result = ValidationResult(files_checked=1)
            result.add_error(resource, f"Cannot read resource: {e}", error_type="IO Error")
            return result
        return self.validate_bytes(data, resource)

    def validate_bytes(self, data: bytes, resource: str = "bytes") -> ValidationResult:
        result = ValidationResult(files_checked=1)
        try:
            etree.fromstring(data, make_parser())
        except etree.XMLSyntaxError as e:
            line, column = e.position if e.position else (None, None)
            result.add_error(
                resource=resource,
                message=str(e.msg or e),
                line=line,
                column=column,
            )
            logger.debug(f"Not well-formed: {resource}: {e}")
        return result

    def validate_package(self, package_path: Path, **kwargs) -> ValidationResult:
        """
        Validate every XML resource in a package.

        Args:
            package_path: Extracted package directory or .idml archive

        Returns:
            ValidationResult with combined validation outcome
        """
        if package_path.is_dir():
            return self._validate_directory(package_path)
        return self._validate_archive(package_path)

    def _validate_directory(self, root: Path) -> ValidationResult:
        result = ValidationResult()
        for path in sorted(root.rglob('*')):
            if path.is_file() and path.suffix.lower() in self.suffixes:
                rel = path.relative_to(root).as_posix()
                result.merge(self.validate_file(path, resource=rel))
        logger.debug(f"Checked {result.files_checked} resources in {root}")
        return result

    def _validate_archive(self, archive_path: Path) -> ValidationResult:
        result = ValidationResult()
        try:
            with zipfile.ZipFile(archive_path, 'r') as zf:
                for info in zf.infolist():
                    if info.is_dir() or Path(info.filename).suffix.lower() not in self.suffixes:
                        continue
                    result.merge(self.validate_bytes(zf.read(info), info.filename))
        except (zipfile.BadZipFile, OSError) as e:
            result.add_error(archive_path.name, f"Cannot open package: {e}", error_type="Archive Error")
        return result
