#!/usr/bin/env python3
"""
Task Splitter

Partitions a master image list into sequential, fixed-size assignments and
persists each one as soon as it is created.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional
import logging

from .errors import DecodeError, InvalidConfiguration, PersistenceError
from .models import Assignment, MasterList, Progress, format_assignment_id, record_timestamp
from .storage import AssignmentStorage

logger = logging.getLogger(__name__)


@dataclass
class SplitReport:
    """Outcome of one split call."""

    project_name: str
    created: int = 0
    saved_ids: List[str] = field(default_factory=list)
    failed_ids: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_ids

    def to_dict(self):
        return {
            "projectName": self.project_name,
            "created": self.created,
            "savedIds": list(self.saved_ids),
            "failedIds": list(self.failed_ids),
        }


def parse_category_lines(text: str) -> List[str]:
    """Decode a label category file with one category per line."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_attributes(text: Optional[str]) -> Any:
    """Decode the optional JSON attribute schema. Its contents are opaque."""
    if text is None or not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Attribute file is not valid JSON: {e}") from e


def parse_task_size(value: Any) -> int:
    """Decode a task size form value."""
    try:
        task_size = int(value)
    except (TypeError, ValueError):
        raise InvalidConfiguration(f"Task size must be an integer, got {value!r}")
    if task_size <= 0:
        raise InvalidConfiguration(f"Task size must be positive, got {task_size}")
    return task_size


class TaskSplitter:
    """Creates assignments from a master image list."""

    def __init__(self, storage: AssignmentStorage):
        self.storage = storage

    def split(
        self,
        master: MasterList,
        task_size: int,
        category: Optional[List[str]] = None,
        attributes: Any = None,
        project_name: str = "",
        label_type: str = "",
        vendor_id: str = "",
        progress_callback: Optional[Callable[[str], None]] = None,
    ) -> SplitReport:
        """
        Split the master list into assignments of at most task_size images.

        A unit that fails to save is logged and listed in the report; the
        remaining units are still written.

        Args:
            master: The uploaded image list
            task_size: Maximum number of images per assignment
            category: Label categories shared by all assignments
            attributes: Opaque attribute schema shared by all assignments
            project_name: Project the assignments belong to
            label_type: Kind of labeling (e.g. "box2d", "tag")
            vendor_id: Vendor that supplies the workers
            progress_callback: Called with each assignment ID after it is handled

        Returns:
            A SplitReport listing saved and failed assignment IDs

        Raises:
            InvalidConfiguration: If task_size is not a positive integer
        """
        if isinstance(task_size, bool) or not isinstance(task_size, int) or task_size <= 0:
            raise InvalidConfiguration(f"Task size must be a positive integer, got {task_size!r}")

        project_name = project_name or master.project_name
        # Rejects unusable project names before anything is written.
        self.storage.project_assignments_dir(project_name)

        images = master.images
        size = len(images)
        report = SplitReport(project_name=project_name)

        for index, start in enumerate(range(0, size, task_size)):
            assignment = Assignment(
                project_name=project_name,
                assignment_id=format_assignment_id(index),
                worker_id=str(index),
                label_type=label_type,
                vendor_id=vendor_id,
                category=list(category or []),
                attributes=attributes,
                images=images[start:min(start + task_size, size)],
                progress=Progress(task_size=task_size),
                start_time=record_timestamp(),
            )
            report.created += 1

            try:
                path = self.storage.assignment_path(project_name, assignment.assignment_id)
                self.storage.write_record(path, assignment.to_dict())
                report.saved_ids.append(assignment.assignment_id)
                logger.info(f"Saved assignment {project_name}/{assignment.assignment_id}")
            except PersistenceError as e:
                report.failed_ids.append(assignment.assignment_id)
                logger.error(
                    f"Failed to save assignment {project_name}/{assignment.assignment_id}: {e}"
                )

            if progress_callback:
                progress_callback(assignment.assignment_id)

        logger.info(
            f"Created {report.created} new assignments for project '{project_name}' "
            f"({len(report.failed_ids)} failed)"
        )
        return report
