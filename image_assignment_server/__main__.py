#!/usr/bin/env python3
"""
Command line entry point.

Example usage:
python -m image_assignment_server serve --data-dir ./data --port 8686
python -m image_assignment_server split --image-list images.json --labels labels.txt --project-name demo --task-size 10
"""

import argparse
import dataclasses
import json
import math
import sys
from pathlib import Path
import logging

import tqdm

from .app import create_app
from .config import ServerConfig, configure_logging
from .errors import AssignmentError
from .models import MasterList
from .storage import AssignmentStorage
from .submission_recorder import COMPLETION_POLICIES
from .task_splitter import TaskSplitter, parse_attributes, parse_category_lines

logger = logging.getLogger("image_assignment_server")


def parse_arguments(argv=None):
    """Parse command line arguments."""
    defaults = ServerConfig.from_env()
    parser = argparse.ArgumentParser(description="Image assignment server")
    parser.add_argument(
        "--data-dir",
        "-d",
        type=str,
        default=str(defaults.data_dir),
        help="Directory holding assignments, submissions and logs",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=str(defaults.log_file) if defaults.log_file else None,
        help="Also write logs to this file",
    )
    parser.add_argument("--log-level", type=str, default=defaults.log_level, help="Logging level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the web server")
    serve.add_argument("--host", type=str, default=defaults.host, help="Interface to bind")
    serve.add_argument("--port", "-p", type=int, default=defaults.port, help="Port to listen on")
    serve.add_argument("--debug", action="store_true", default=defaults.debug, help="Run Flask in debug mode")
    serve.add_argument(
        "--completion-policy",
        choices=COMPLETION_POLICIES,
        default=defaults.completion_policy,
        help="When a complete submission increments numSubmissions",
    )

    split = subparsers.add_parser("split", help="Split an image list into assignments")
    split.add_argument("--image-list", "-i", type=str, required=True, help="JSON file with the image list")
    split.add_argument("--labels", "-l", type=str, default=None, help="Label categories, one per line")
    split.add_argument("--attributes", "-a", type=str, default=None, help="JSON attribute schema")
    split.add_argument("--project-name", type=str, required=True, help="Project name")
    split.add_argument("--task-size", "-s", type=int, required=True, help="Images per assignment")
    split.add_argument("--label-type", type=str, default="", help="Kind of labeling")
    split.add_argument("--vendor-id", type=str, default="", help="Vendor identifier")

    return parser.parse_args(argv)


def run_split(args) -> int:
    """Split a local image list without going through the web server."""
    image_list = Path(args.image_list)
    with open(image_list, "r", encoding="utf-8") as f:
        master = MasterList.from_dict(json.load(f))

    category = []
    if args.labels:
        category = parse_category_lines(Path(args.labels).read_text(encoding="utf-8"))
    attributes = None
    if args.attributes:
        attributes = parse_attributes(Path(args.attributes).read_text(encoding="utf-8"))

    splitter = TaskSplitter(AssignmentStorage(Path(args.data_dir)))
    total = math.ceil(len(master.images) / args.task_size) if args.task_size > 0 else 0
    with tqdm.tqdm(total=total, desc="Creating assignments") as progress:
        report = splitter.split(
            master,
            args.task_size,
            category=category,
            attributes=attributes,
            project_name=args.project_name,
            label_type=args.label_type,
            vendor_id=args.vendor_id,
            progress_callback=lambda _: progress.update(1),
        )

    print(
        f"Created {report.created} assignments for project '{report.project_name}', "
        f"with {len(report.failed_ids)} errors."
    )
    if report.failed_ids:
        print(f"Failed assignment IDs: {', '.join(report.failed_ids)}")
        return 1
    return 0


def build_server_config(args) -> ServerConfig:
    """Environment settings with the command line flags applied on top."""
    return dataclasses.replace(
        ServerConfig.from_env(),
        data_dir=Path(args.data_dir),
        host=args.host,
        port=args.port,
        debug=args.debug,
        log_level=args.log_level,
        log_file=Path(args.log_file) if args.log_file else None,
        completion_policy=args.completion_policy,
    )


def main(argv=None) -> int:
    args = parse_arguments(argv)
    configure_logging(args.log_level, Path(args.log_file) if args.log_file else None)

    try:
        if args.command == "split":
            return run_split(args)

        config = build_server_config(args)
        app = create_app(config)
        app.run(debug=config.debug, host=config.host, port=config.port)
        return 0
    except (AssignmentError, OSError, json.JSONDecodeError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
