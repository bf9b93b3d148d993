#!/usr/bin/env python3
"""
State Resolver

Answers "what is the current state of assignment X": the latest submission if
one has been accepted, otherwise the original assignment.
"""

from pathlib import Path
from typing import Optional, Union
import logging

from .errors import DecodeError, NotFound, PersistenceError
from .models import Assignment, Submission, TaskInfo
from .storage import AssignmentStorage

logger = logging.getLogger(__name__)


class StateResolver:
    """Resolves assignment identities to their freshest stored record."""

    def __init__(self, storage: AssignmentStorage):
        self.storage = storage

    def _load(self, cls, path: Path):
        data = self.storage.read_record(path)
        try:
            return cls.from_dict(data)
        except DecodeError as e:
            logger.error(f"Stored record {path} is malformed: {e}")
            raise PersistenceError(f"Malformed record {path.name}") from e

    def find_prior(
        self, project_name: str, assignment_id: str
    ) -> Optional[Union[Submission, Assignment]]:
        """Latest submission, else original assignment, else None."""
        latest_path = self.storage.latest_submission_path(project_name, assignment_id)
        if latest_path.exists():
            return self._load(Submission, latest_path)

        assignment_path = self.storage.assignment_path(project_name, assignment_id)
        if assignment_path.exists():
            return self._load(Assignment, assignment_path)

        return None

    def resolve(self, project_name: str, assignment_id: str) -> Union[Submission, Assignment]:
        """
        Return the current state of an assignment.

        Raises:
            NotFound: If neither a submission nor the assignment exists
            PersistenceError: If the existing record cannot be read
        """
        record = self.find_prior(project_name, assignment_id)
        if record is None:
            logger.error(f"Can not find {project_name}/{assignment_id}")
            raise NotFound(f"Assignment {project_name}/{assignment_id} not found")

        logger.info(f"Loaded {record.kind} of {project_name}/{assignment_id}")
        return record

    def load_assignment(self, project_name: str, assignment_id: str) -> Assignment:
        """Return the assignment as created by the splitter, ignoring submissions."""
        path = self.storage.assignment_path(project_name, assignment_id)
        if not path.exists():
            logger.error(f"Can not find assignment {project_name}/{assignment_id}")
            raise NotFound(f"Assignment {project_name}/{assignment_id} not found")

        logger.info(f"Finished reading assignment file of {project_name}/{assignment_id}")
        return self._load(Assignment, path)

    def info(self, project_name: str, assignment_id: str) -> TaskInfo:
        """Progress summary of the current state of an assignment."""
        return TaskInfo.from_record(self.resolve(project_name, assignment_id))
