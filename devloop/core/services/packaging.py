"""
Packaging coordinator — one packaging pass at a time, retried until it works.

States:
    IDLE     → no pass running; ``package_all`` starts one.
    RUNNING  → a pass (or its pending retry) owns the packager;
               ``package_all`` is a no-op.

Transitions:
    IDLE → RUNNING:    package_all()
    RUNNING → IDLE:    every component packaged
    RUNNING → RUNNING: a component failed; after the retry delay the same
                       task re-runs the whole batch.  Triggers that arrive
                       during the delay are ignored like any other.
    RUNNING → IDLE:    a bounded retry policy ran out (never by default)

Components are packaged in discovery order, one at a time; the packager's
output directories and caches are not safe to share.  The first failure
aborts the batch.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from pathlib import Path

from devloop.adapters.base import ComponentPackager
from devloop.core.observability.reporter import Reporter
from devloop.core.reliability.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)


class PackagingState(StrEnum):
    """Packaging coordinator states."""

    IDLE = "idle"
    RUNNING = "running"


def describe_failure(error: BaseException) -> str:
    """One-line description of a packaging failure for the console.

    Syntax errors carry their location; anything else falls back to its
    message, then to its repr when the message is empty.
    """
    if isinstance(error, SyntaxError):
        where = ""
        if error.filename:
            where = f" ({error.filename}"
            where += f", line {error.lineno})" if error.lineno else ")"
        return f"{error.msg}{where}"
    message = str(error)
    return message if message else repr(error)


class PackagingCoordinator:
    """Serializes packaging passes over the component list.

    Args:
        packager: Collaborator that packages one component.
        reporter: Narrative sink.
        retry_policy: Delay and decision for whole-batch retries.
        production: Passed through to the packager.
    """

    def __init__(
        self,
        packager: ComponentPackager,
        reporter: Reporter,
        retry_policy: RetryPolicy | None = None,
        *,
        production: bool = False,
    ) -> None:
        self._packager = packager
        self._reporter = reporter
        self._retry_policy = retry_policy or RetryPolicy()
        self._production = production
        self.state = PackagingState.IDLE
        self.current: Path | None = None
        self.batches = 0
        self.task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.state is PackagingState.RUNNING

    def package_all(self, components: list[Path]) -> asyncio.Task | None:
        """Start a packaging pass unless one is already running.

        Returns:
            The task running the pass, or None when a pass was already in
            flight.  The task's result is True once everything packaged,
            False if a bounded retry policy gave up.
        """
        if self.running:
            logger.debug("Packaging already in progress; ignoring trigger")
            return None

        self.state = PackagingState.RUNNING
        # Held here so fire-and-forget triggers keep the task alive
        self.task = asyncio.ensure_future(self._run(list(components)))
        return self.task

    async def _run(self, components: list[Path]) -> bool:
        retries = 0
        while True:
            self._reporter.step("Packaging components...")
            error = await self._package_batch(components)

            if error is None:
                self.state = PackagingState.IDLE
                self.current = None
                self._reporter.ok()
                return True

            failed = self.current
            self._reporter.error(
                f"an error happened while packaging {failed}: {describe_failure(error)}"
            )
            if not self._retry_policy.should_retry(retries):
                self.state = PackagingState.IDLE
                self.current = None
                self._reporter.error(f"Giving up on packaging after {retries} retries")
                return False

            self._reporter.warn(f"Retrying in {self._retry_policy.delay_label}...")
            await self._retry_policy.wait()
            retries += 1

    async def _package_batch(self, components: list[Path]) -> BaseException | None:
        """Package in order; return the first error, or None."""
        self.batches += 1
        for component in components:
            self.current = component
            try:
                await self._packager.package(component, self._production)
            except asyncio.CancelledError:
                self.state = PackagingState.IDLE
                raise
            except Exception as e:
                logger.debug("Packaging %s failed", component, exc_info=True)
                return e
        return None
