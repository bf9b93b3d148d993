#!/usr/bin/env python3
"""
Assignment Data Model

Dataclasses for the records exchanged with the labeling front end and stored
on disk. Master lists, assignments and submissions share one JSON document
shape (camelCase keys) but are kept apart as separate record types.
"""

import time
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

from .errors import DecodeError


def record_timestamp() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def format_assignment_id(index: int) -> str:
    """Format a sequential assignment index as a six digit ID."""
    return f"{index:06d}"


def _as_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    raise DecodeError(f"Field '{key}' must be a string, got {type(value).__name__}")


def _as_int(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool):
        raise DecodeError(f"Field '{key}' must be an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise DecodeError(f"Field '{key}' must be an integer, got {value!r}")


def _as_list(data: Dict[str, Any], key: str) -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise DecodeError(f"Field '{key}' must be a list, got {type(value).__name__}")
    return value


def _as_object(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise DecodeError(f"{what} must be a JSON object, got {type(value).__name__}")
    return value


def _str_list(data: Dict[str, Any], key: str) -> List[str]:
    items = _as_list(data, key)
    for item in items:
        if not isinstance(item, str):
            raise DecodeError(f"Field '{key}' must contain only strings")
    return list(items)


@dataclass
class Label:
    """A single annotation entered by a worker. Attribute payloads are opaque."""

    id: str = ""
    category: str = ""
    attribute: Any = None
    custom_attributes: Any = None
    position: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> "Label":
        data = _as_object(data, "Label")
        return cls(
            id=_as_str(data, "id"),
            category=_as_str(data, "category"),
            attribute=data.get("attribute"),
            custom_attributes=data.get("customAttributes"),
            position=data.get("position"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "attribute": self.attribute,
            "customAttributes": self.custom_attributes,
            "position": self.position,
        }


@dataclass
class ImageObject:
    """An image to label and the labels entered for it."""

    url: str = ""
    ground_truth: str = ""
    labels: List[Label] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "ImageObject":
        data = _as_object(data, "Image")
        return cls(
            url=_as_str(data, "url"),
            ground_truth=_as_str(data, "groundTruth"),
            labels=[Label.from_dict(item) for item in _as_list(data, "labels")],
            tags=_str_list(data, "tags"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "groundTruth": self.ground_truth,
            "labels": [label.to_dict() for label in self.labels],
            "tags": list(self.tags),
        }


@dataclass(frozen=True)
class Event:
    """One user action in the labeling interface."""

    timestamp: int = 0
    action: str = ""
    target_index: str = ""
    position: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> "Event":
        data = _as_object(data, "Event")
        return cls(
            timestamp=_as_int(data, "timestamp"),
            action=_as_str(data, "action"),
            target_index=_as_str(data, "targetIndex"),
            position=data.get("position"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "action": self.action,
            "targetIndex": self.target_index,
            "position": self.position,
        }


@dataclass
class Progress:
    """Progress counters shared by assignments and submissions."""

    task_size: int = 0
    num_labeled_images: int = 0
    num_displayed_images: int = 0
    num_submissions: int = 0

    @property
    def is_complete(self) -> bool:
        return self.num_labeled_images == self.task_size

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Progress":
        return cls(
            task_size=_as_int(data, "taskSize"),
            num_labeled_images=_as_int(data, "numLabeledImages"),
            num_displayed_images=_as_int(data, "numDisplayedImages"),
            num_submissions=_as_int(data, "numSubmissions"),
        )


@dataclass
class TaskRecord:
    """
    Fields common to every record kind.

    Subclasses only differ in how the engine treats them: a MasterList is split,
    an Assignment is created once by the splitter, a Submission is a stamped
    snapshot of worker progress. All of them serialize to the same document.
    """

    kind: ClassVar[str] = "task"

    project_name: str = ""
    assignment_id: str = ""
    worker_id: str = ""
    label_type: str = ""
    vendor_id: str = ""
    category: List[str] = field(default_factory=list)
    attributes: Any = None
    images: List[ImageObject] = field(default_factory=list)
    progress: Progress = field(default_factory=Progress)
    start_time: int = 0
    submit_time: int = 0
    events: List[Event] = field(default_factory=list)
    ip_address: Any = None
    user_agent: str = ""

    @classmethod
    def from_dict(cls, data: Any):
        """Decode a JSON document. Missing fields take their zero value."""
        data = _as_object(data, "Task")
        return cls(
            project_name=_as_str(data, "projectName"),
            assignment_id=_as_str(data, "assignmentId"),
            worker_id=_as_str(data, "workerId"),
            label_type=_as_str(data, "labelType"),
            vendor_id=_as_str(data, "vendorId"),
            category=_str_list(data, "category"),
            attributes=data.get("attributes"),
            images=[ImageObject.from_dict(item) for item in _as_list(data, "images")],
            progress=Progress.from_dict(data),
            start_time=_as_int(data, "startTime"),
            submit_time=_as_int(data, "submitTime"),
            events=[Event.from_dict(item) for item in _as_list(data, "events")],
            ip_address=data.get("ipAddress"),
            user_agent=_as_str(data, "userAgent"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assignmentId": self.assignment_id,
            "projectName": self.project_name,
            "workerId": self.worker_id,
            "category": list(self.category),
            "attributes": self.attributes,
            "labelType": self.label_type,
            "taskSize": self.progress.task_size,
            "images": [image.to_dict() for image in self.images],
            "submitTime": self.submit_time,
            "numSubmissions": self.progress.num_submissions,
            "numLabeledImages": self.progress.num_labeled_images,
            "numDisplayedImages": self.progress.num_displayed_images,
            "startTime": self.start_time,
            "events": [event.to_dict() for event in self.events],
            "vendorId": self.vendor_id,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
        }


@dataclass
class MasterList(TaskRecord):
    """The full image list uploaded for a project, before splitting."""

    kind: ClassVar[str] = "master"


@dataclass
class Assignment(TaskRecord):
    """One bounded unit of work created by the splitter."""

    kind: ClassVar[str] = "assignment"


@dataclass
class Submission(TaskRecord):
    """A snapshot of worker progress against an assignment."""

    kind: ClassVar[str] = "submission"


@dataclass
class TaskInfo:
    """Identity and progress of a task, without images or annotations."""

    assignment_id: str = ""
    project_name: str = ""
    worker_id: str = ""
    label_type: str = ""
    task_size: int = 0
    submit_time: int = 0
    num_submissions: int = 0
    num_labeled_images: int = 0
    start_time: int = 0

    @classmethod
    def from_record(cls, record: TaskRecord) -> "TaskInfo":
        return cls(
            assignment_id=record.assignment_id,
            project_name=record.project_name,
            worker_id=record.worker_id,
            label_type=record.label_type,
            task_size=record.progress.task_size,
            submit_time=record.submit_time,
            num_submissions=record.progress.num_submissions,
            num_labeled_images=record.progress.num_labeled_images,
            start_time=record.start_time,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assignmentId": self.assignment_id,
            "projectName": self.project_name,
            "workerId": self.worker_id,
            "labelType": self.label_type,
            "taskSize": self.task_size,
            "submitTime": self.submit_time,
            "numSubmissions": self.num_submissions,
            "numLabeledImages": self.num_labeled_images,
            "startTime": self.start_time,
        }


@dataclass
class Result:
    """Labelled images of one or more assignments."""

    images: List[ImageObject] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"images": [image.to_dict() for image in self.images]}


@dataclass(frozen=True)
class Identity:
    """The (project, assignment) pair every path is derived from."""

    project_name: str
    assignment_id: str

    @classmethod
    def from_dict(cls, data: Any) -> "Identity":
        data = _as_object(data, "Request")
        return cls(
            project_name=_as_str(data, "projectName"),
            assignment_id=_as_str(data, "assignmentId"),
        )

    @classmethod
    def of(cls, record: TaskRecord) -> "Identity":
        return cls(record.project_name, record.assignment_id)

    def __str__(self) -> str:
        return f"{self.project_name}/{self.assignment_id}"


def decode_record(cls, payload: Optional[Any]):
    """Decode a request payload into a record of the given kind."""
    if payload is None:
        raise DecodeError("Request body is not valid JSON")
    return cls.from_dict(payload)
