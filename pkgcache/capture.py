"""Build message capture.

A Capture collects diagnostics during a build without aborting it. Messages
are attributed to nested, named jobs (e.g. "building package foo") so the
caller can tell which package produced which error.

The capture is an explicit handle: code that may report errors receives it
as an argument, and entry points check that it is active.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class NotInCaptureError(Exception):
    """Raised when build code runs outside an active capture scope."""

    def __init__(
        self,
        message: str = "Not inside an active build message capture",
        code: str = "not_in_capture",
    ) -> None:
        super().__init__(message)
        self.code = code


@dataclass
class BuildMessage:
    """A single recorded diagnostic.

    Attributes:
        message: Human-readable message.
        job: Titles of the enclosing jobs, outermost first.
        path: Optional file the message refers to.
    """

    message: str
    job: tuple[str, ...] = ()
    path: str | None = None

    def format(self) -> str:
        location = f"{self.path}: " if self.path else ""
        if self.job:
            return f"While {' > '.join(self.job)}:\n  {location}{self.message}"
        return f"{location}{self.message}"


@dataclass
class Job:
    """A named scope that owns the messages reported inside it."""

    title: str
    parent: Job | None = None
    messages: list[BuildMessage] = field(default_factory=list)
    children: list[Job] = field(default_factory=list)

    def path(self) -> tuple[str, ...]:
        titles: list[str] = []
        job: Job | None = self
        while job is not None and job.parent is not None:
            titles.append(job.title)
            job = job.parent
        return tuple(reversed(titles))

    def has_messages(self) -> bool:
        """True if this job or any nested job recorded a message."""
        return bool(self.messages) or any(c.has_messages() for c in self.children)

    def iter_messages(self) -> Iterator[BuildMessage]:
        yield from self.messages
        for child in self.children:
            yield from child.iter_messages()


class Capture:
    """Collects build messages across nested jobs.

    Usage:
        capture = Capture()
        with capture.scope():
            cache.build_packages(capture, package_map)
        if capture.has_messages():
            print(capture.format_messages())
    """

    def __init__(self, title: str = "build") -> None:
        self._root = Job(title=title)
        self._current: Job | None = None

    @property
    def active(self) -> bool:
        return self._current is not None

    @contextmanager
    def scope(self) -> Iterator[Capture]:
        """Activate the capture for the duration of the block."""
        if self.active:
            raise RuntimeError("Capture scope is already active")
        self._current = self._root
        try:
            yield self
        finally:
            self._current = None

    def assert_in_capture(self) -> None:
        """Raise NotInCaptureError unless the capture is active."""
        if self._current is None:
            raise NotInCaptureError()

    @contextmanager
    def enter_job(self, title: str) -> Iterator[Job]:
        """Run the block inside a nested job.

        Args:
            title: Job title, e.g. "building package foo".

        Yields:
            The new Job.
        """
        self.assert_in_capture()
        assert self._current is not None
        job = Job(title=title, parent=self._current)
        self._current.children.append(job)
        self._current = job
        logger.debug("Entering job: %s", title)
        try:
            yield job
        finally:
            self._current = job.parent

    def error(self, message: str, *, path: str | None = None) -> None:
        """Record an error in the current job without raising."""
        self.assert_in_capture()
        assert self._current is not None
        msg = BuildMessage(message=message, job=self._current.path(), path=path)
        self._current.messages.append(msg)
        logger.error("%s", msg.format())

    def job_has_messages(self) -> bool:
        """True if the current job (or a job nested in it) has messages."""
        self.assert_in_capture()
        assert self._current is not None
        return self._current.has_messages()

    def has_messages(self) -> bool:
        return self._root.has_messages()

    @property
    def messages(self) -> list[BuildMessage]:
        """All recorded messages, in reporting order per job."""
        return list(self._root.iter_messages())

    def format_messages(self) -> str:
        return "\n".join(m.format() for m in self.messages)


__all__ = ["BuildMessage", "Capture", "Job", "NotInCaptureError"]
