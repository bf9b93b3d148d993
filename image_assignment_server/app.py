#!/usr/bin/env python3
"""
Image Assignment Server - Web Server

A Flask-based web application that hands out labeling assignments to workers,
records their submissions, and serves back the current state of assignments.
"""

import json
from pathlib import Path
from typing import Optional
import logging

from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import ServerConfig
from .errors import AssignmentError, DecodeError
from .models import Identity, MasterList
from .results import ResultExporter
from .state_resolver import StateResolver
from .storage import AssignmentStorage
from .submission_recorder import SubmissionRecorder
from .task_splitter import (
    TaskSplitter,
    parse_attributes,
    parse_category_lines,
    parse_task_size,
)

logger = logging.getLogger(__name__)


class AssignmentServices:
    """The engine components shared by all requests of one app."""

    def __init__(self, config: ServerConfig):
        self.storage = AssignmentStorage(config.data_dir)
        self.resolver = StateResolver(self.storage)
        self.splitter = TaskSplitter(self.storage)
        self.recorder = SubmissionRecorder(
            self.storage, self.resolver, completion_policy=config.completion_policy
        )
        self.exporter = ResultExporter(self.storage, self.resolver)


def services() -> AssignmentServices:
    return current_app.extensions["image_assignment"]


def _read_upload_text(field_name: str, required: bool = True) -> Optional[str]:
    """Read an uploaded multipart file as UTF-8 text."""
    upload = request.files.get(field_name)
    if upload is None or not upload.filename:
        if required:
            raise DecodeError(f"No '{field_name}' file provided")
        return None
    try:
        return upload.read().decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"File '{field_name}' is not UTF-8 text") from e


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise DecodeError("Request body is not valid JSON")
    return data


def _request_identity() -> Identity:
    return Identity.from_dict(_json_body())


def create_app(config: Optional[ServerConfig] = None) -> Flask:
    """Create the Flask application for the given configuration."""
    config = config or ServerConfig.from_env()

    app = Flask(__name__)
    app.config["DATA_DIR"] = Path(config.data_dir)
    app.config["MAX_CONTENT_LENGTH"] = config.max_content_length
    app.config["COMPLETION_POLICY"] = config.completion_policy
    app.json.sort_keys = False
    app.json.compact = False
    app.extensions["image_assignment"] = AssignmentServices(config)

    @app.errorhandler(AssignmentError)
    def handle_assignment_error(e: AssignmentError):
        logger.error(f"{type(e).__name__} on {request.path}: {e}")
        return jsonify({"error": str(e)}), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        if isinstance(e, HTTPException):
            return e
        logger.exception(f"Unexpected error on {request.path}: {e}")
        return jsonify({"error": "Internal server error"}), 500

    @app.route("/healthz")
    def healthz():
        return jsonify({"status": "ok"})

    @app.route("/postAssignment", methods=["POST"])
    def post_assignment():
        """Split an uploaded image list into assignments."""
        image_list = _read_upload_text("image_list")
        try:
            master = MasterList.from_dict(json.loads(image_list))
        except json.JSONDecodeError as e:
            raise DecodeError(f"Image list is not valid JSON: {e}") from e

        labels = _read_upload_text("label", required=False)
        category = parse_category_lines(labels) if labels is not None else []

        attributes_text = _read_upload_text("custom_attributes", required=False)
        if attributes_text is None:
            logger.warning("No attribute file provided")
        attributes = parse_attributes(attributes_text)

        task_size = parse_task_size(request.form.get("task_size"))
        report = services().splitter.split(
            master,
            task_size,
            category=category,
            attributes=attributes,
            project_name=request.form.get("project_name", ""),
            label_type=request.form.get("label_type", ""),
            vendor_id=request.form.get("vendor_id", ""),
        )

        if not report.ok:
            return jsonify({"error": "Some assignments could not be saved", **report.to_dict()}), 500
        return str(report.created), 200, {"Content-Type": "text/plain; charset=utf-8"}

    @app.route("/postSubmission", methods=["POST"])
    def post_submission():
        """Record a worker's submission."""
        submission = services().recorder.record(_json_body())
        return jsonify(submission.to_dict())

    @app.route("/postLog", methods=["POST"])
    def post_log():
        """Record a progress snapshot."""
        snapshot = services().recorder.record_log(_json_body())
        return jsonify(snapshot.to_dict())

    @app.route("/requestAssignment", methods=["POST"])
    def request_assignment():
        """Return an assignment as originally created."""
        identity = _request_identity()
        assignment = services().resolver.load_assignment(
            identity.project_name, identity.assignment_id
        )
        return jsonify(assignment.to_dict())

    @app.route("/requestSubmission", methods=["POST"])
    def request_submission():
        """Return the current state of an assignment."""
        identity = _request_identity()
        record = services().resolver.resolve(identity.project_name, identity.assignment_id)
        return jsonify(record.to_dict())

    @app.route("/requestInfo", methods=["POST"])
    def request_info():
        """Return the progress summary of an assignment."""
        identity = _request_identity()
        info = services().resolver.info(identity.project_name, identity.assignment_id)
        return jsonify(info.to_dict())

    @app.route("/result")
    def read_result():
        """Labelled images of one assignment."""
        project_name = request.args.get("project_name", "")
        assignment_id = request.args.get("task_id", "")
        result = services().exporter.get_result(project_name, assignment_id)
        return jsonify(result.to_dict())

    @app.route("/fullResult")
    def read_full_result():
        """Labelled images of all assignments of a project."""
        project_name = request.args.get("project_name", "")
        result = services().exporter.get_full_result(project_name)
        return jsonify(result.to_dict())

    logger.info(f"Assignment server using data directory {config.data_dir}")
    return app
