#!/usr/bin/env python3
"""Exports the labelled images of one assignment or of a whole project."""

import logging

from .errors import NotFound
from .models import Result
from .state_resolver import StateResolver
from .storage import AssignmentStorage

logger = logging.getLogger(__name__)


class ResultExporter:
    """Collects the current images of assignments into Result documents."""

    def __init__(self, storage: AssignmentStorage, resolver: StateResolver):
        self.storage = storage
        self.resolver = resolver

    def get_result(self, project_name: str, assignment_id: str) -> Result:
        """Images of the current state of one assignment."""
        record = self.resolver.resolve(project_name, assignment_id)
        return Result(images=list(record.images))

    def get_full_result(self, project_name: str) -> Result:
        """Images of every assignment in the project, in assignment order."""
        assignment_ids = self.storage.list_assignment_ids(project_name)
        if not assignment_ids:
            raise NotFound(f"Project '{project_name}' has no assignments")

        result = Result()
        for assignment_id in assignment_ids:
            record = self.resolver.resolve(project_name, assignment_id)
            result.images.extend(record.images)

        logger.info(
            f"Collected {len(result.images)} images from {len(assignment_ids)} "
            f"assignments of project '{project_name}'"
        )
        return result
