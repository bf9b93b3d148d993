#!/usr/bin/env python3
"""
Submission Recorder

Accepts a worker's in-progress or completed assignment state, stamps it,
detects completion, and persists it both as a historical submission and as the
assignment's latest-submission record. Progress log snapshots are written the
same way to a separate log directory.
"""

import threading
import weakref
from typing import Any, Tuple
import logging

from .models import Identity, Submission, decode_record, record_timestamp
from .state_resolver import StateResolver
from .storage import AssignmentStorage

logger = logging.getLogger(__name__)

# Increment numSubmissions only when a submission goes from incomplete to complete.
POLICY_TRANSITION = "transition"
# Increment numSubmissions on every complete submission.
POLICY_ALWAYS = "always"
COMPLETION_POLICIES = (POLICY_TRANSITION, POLICY_ALWAYS)


class IdentityLocks:
    """
    One lock per (project, assignment) identity, created on first use.

    Locks are held weakly and disappear once no request is using them.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[Tuple[str, str], threading.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, identity: Identity) -> threading.Lock:
        key = (identity.project_name, identity.assignment_id)
        with self._lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


class SubmissionRecorder:
    """Records submissions and progress logs for assignments."""

    def __init__(
        self,
        storage: AssignmentStorage,
        resolver: StateResolver,
        completion_policy: str = POLICY_TRANSITION,
    ):
        if completion_policy not in COMPLETION_POLICIES:
            raise ValueError(f"Unknown completion policy: {completion_policy}")
        self.storage = storage
        self.resolver = resolver
        self.completion_policy = completion_policy
        self._locks = IdentityLocks()

    def record(self, payload: Any) -> Submission:
        """
        Record one submission.

        Args:
            payload: Decoded JSON body sent by the labeling front end

        Returns:
            The submission as stored

        Raises:
            DecodeError: If the payload is not a valid task document
            PersistenceError: If the submission cannot be saved
        """
        submission = decode_record(Submission, payload)
        identity = Identity.of(submission)

        with self._locks.get(identity):
            submission.submit_time = record_timestamp()
            self._count_completion(submission)

            submission_path = self.storage.submission_path(
                identity.project_name, identity.assignment_id, submission.submit_time
            )
            latest_path = self.storage.latest_submission_path(
                identity.project_name, identity.assignment_id
            )

            data = submission.to_dict()
            self.storage.write_record(submission_path, data)
            self.storage.write_record(latest_path, data)

        logger.info(f"Saved submission of {identity} to {submission_path.name}")
        return submission

    def _count_completion(self, submission: Submission) -> None:
        progress = submission.progress
        if self.completion_policy == POLICY_ALWAYS:
            if progress.is_complete:
                progress.num_submissions += 1
                logger.info(f"Complete submission of {Identity.of(submission)}")
            return

        prior = self.resolver.find_prior(submission.project_name, submission.assignment_id)
        was_complete = False
        if prior is not None:
            progress.num_submissions = prior.progress.num_submissions
            was_complete = prior.kind == Submission.kind and prior.progress.is_complete

        if progress.is_complete and not was_complete:
            progress.num_submissions += 1
            logger.info(f"Complete submission of {Identity.of(submission)}")

    def record_log(self, payload: Any) -> Submission:
        """
        Save a progress snapshot to the log directory.

        Log snapshots never touch the submission history or the latest slot.
        """
        snapshot = decode_record(Submission, payload)
        identity = Identity.of(snapshot)

        if snapshot.progress.is_complete:
            snapshot.progress.num_submissions += 1
        snapshot.submit_time = record_timestamp()

        with self._locks.get(identity):
            log_path = self.storage.log_path(
                identity.project_name, identity.assignment_id, snapshot.submit_time
            )
            self.storage.write_record(log_path, snapshot.to_dict())

        logger.info(f"Saving log of {identity}")
        return snapshot
