"""
Job Workspace
=============

Exclusively owned temporary directory for one extraction or export.
Each workspace gets a fresh, uniquely named directory and is deleted on
every exit path.
"""

import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional
import logging

from idml_core.errors import ResourceIOError

logger = logging.getLogger(__name__)

PACKAGE_DIR = "package"


class Workspace:
    """
    Temporary job directory.

    Layout:
        <path>/package/   extracted package being rewritten
        <path>/...        scratch files for the job

    Example:
        with Workspace.create(prefix="export-") as ws:
            archive.open(template, ws.package_dir)
    """

    def __init__(self, path: Path):
        self.path = path

    @property
    def package_dir(self) -> Path:
        return self.path / PACKAGE_DIR

    @property
    def exists(self) -> bool:
        return self.path.exists()

    @classmethod
    def create(cls, base_dir: Optional[Path] = None, prefix: str = "idml-job-") -> 'Workspace':
        """
        Allocate a new uniquely named directory.

        Raises:
            ResourceIOError: If the directory cannot be created
        """
        try:
            if base_dir is not None:
                base_dir.mkdir(parents=True, exist_ok=True)
            path = Path(tempfile.mkdtemp(prefix=prefix, dir=str(base_dir) if base_dir else None))
        except OSError as e:
            raise ResourceIOError("Cannot create job workspace", detail=str(e)) from e
        logger.debug(f"Created workspace {path}")
        return cls(path)

    def cleanup(self) -> None:
        """Delete the workspace tree. Failures are logged, never raised."""
        if not self.path.exists():
            return
        try:
            shutil.rmtree(self.path)
            logger.debug(f"Removed workspace {self.path}")
        except OSError as e:
            logger.error(f"Failed to remove workspace {self.path}: {e}")

    def __enter__(self) -> 'Workspace':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()


@contextmanager
def job_workspace(base_dir: Optional[Path] = None, prefix: str = "idml-job-") -> Iterator[Workspace]:
    """Context manager yielding a Workspace that is removed on exit."""
    workspace = Workspace.create(base_dir, prefix)
    try:
        yield workspace
    finally:
        workspace.cleanup()
