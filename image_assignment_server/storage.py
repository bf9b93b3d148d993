#!/usr/bin/env python3
"""
Assignment Storage

Maps (project, assignment) identities to files under the data directory and
reads/writes the JSON records stored there.

Layout:
    <data_dir>/Assignments/<project>/<assignment_id>.json
    <data_dir>/Submissions/<project>/<assignment_id>/<submit_time>.json
    <data_dir>/Submissions/<project>/<assignment_id>/latest.json
    <data_dir>/Log/<project>/<assignment_id>/<submit_time>.json
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from .errors import DecodeError, PersistenceError

logger = logging.getLogger(__name__)

LATEST_NAME = "latest"


class AssignmentStorage:
    """Resolves record paths and persists records as indented JSON."""

    def __init__(self, data_dir: Path):
        """
        Initialize the storage.

        Args:
            data_dir: Root directory for assignment, submission and log files.
        """
        self.data_dir = Path(data_dir)
        self.assignments_dir = self.data_dir / "Assignments"
        self.submissions_dir = self.data_dir / "Submissions"
        self.log_dir = self.data_dir / "Log"

    @staticmethod
    def _component(value: str, what: str) -> str:
        """
        Validate a project name or assignment ID used as a path component.

        Names are used as-is, so two distinct identities never share a file.
        Letters and digits of any script are allowed, plus hyphens and
        underscores.

        Raises:
            DecodeError: If the name is empty or has any other character.
        """
        name = str(value)
        if not name or not name.replace("_", "").replace("-", "").isalnum():
            raise DecodeError(
                f"Invalid {what} {value!r}: only letters, digits, hyphens and underscores are allowed"
            )
        return name

    def project_assignments_dir(self, project_name: str) -> Path:
        return self.assignments_dir / self._component(project_name, "project name")

    def assignment_path(self, project_name: str, assignment_id: str) -> Path:
        """Path of the original assignment record."""
        assignment = self._component(assignment_id, "assignment ID")
        return self.project_assignments_dir(project_name) / f"{assignment}.json"

    def submission_dir(self, project_name: str, assignment_id: str) -> Path:
        project = self._component(project_name, "project name")
        assignment = self._component(assignment_id, "assignment ID")
        return self.submissions_dir / project / assignment

    def submission_path(self, project_name: str, assignment_id: str, stamp: int) -> Path:
        """Fresh path for one historical submission; never an existing file."""
        return _unused_path(self.submission_dir(project_name, assignment_id), str(stamp))

    def latest_submission_path(self, project_name: str, assignment_id: str) -> Path:
        """The single mutable latest-submission slot of an assignment."""
        return self.submission_dir(project_name, assignment_id) / f"{LATEST_NAME}.json"

    def log_path(self, project_name: str, assignment_id: str, stamp: int) -> Path:
        """Fresh path for one progress log snapshot."""
        project = self._component(project_name, "project name")
        assignment = self._component(assignment_id, "assignment ID")
        return _unused_path(self.log_dir / project / assignment, str(stamp))

    def list_assignment_ids(self, project_name: str) -> List[str]:
        """IDs of all assignments created for a project, in order."""
        project_dir = self.project_assignments_dir(project_name)
        if not project_dir.is_dir():
            return []
        return sorted(path.stem for path in project_dir.glob("*.json"))

    def write_record(self, path: Path, data: Dict[str, Any]) -> None:
        """
        Write a JSON document, replacing any existing file atomically.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        tmp_name: Optional[str] = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving {path}: {e}")
            raise PersistenceError(f"Failed to save {path.name}") from e
        finally:
            if tmp_name:
                Path(tmp_name).unlink(missing_ok=True)

    def read_record(self, path: Path) -> Dict[str, Any]:
        """
        Load a JSON document.

        Raises:
            PersistenceError: If the file cannot be read or is not valid JSON.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Error decoding {path}: {e}")
            raise PersistenceError(f"Corrupt record {path.name}") from e
        except OSError as e:
            logger.error(f"Error reading {path}: {e}")
            raise PersistenceError(f"Failed to read {path.name}") from e


def _unused_path(directory: Path, stem: str) -> Path:
    path = directory / f"{stem}.json"
    suffix = 1
    while path.exists():
        path = directory / f"{stem}-{suffix}.json"
        suffix += 1
    return path
