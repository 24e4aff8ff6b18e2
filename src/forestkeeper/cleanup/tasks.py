"""Concurrent execution of independent units of work."""

import asyncio
import logging
from collections.abc import Callable

from forestkeeper.cleanup.models import DeletionOutcome, TaskResult

logger = logging.getLogger(__name__)

Unit = Callable[[], DeletionOutcome]


class TaskSet:
    """A batch of named, independent, blocking units of work.

    Units run in worker threads, at most `max_workers` at a time. A unit that
    raises is logged and recorded as failed; it never cancels its siblings, and
    the batch always runs to completion.
    """

    def __init__(self, name: str, max_workers: int = 8) -> None:
        """Initialize the task set.

        Args:
            name: Name used in log messages
            max_workers: Maximum number of units running at once
        """
        self.name = name
        self.max_workers = max_workers
        self._units: list[tuple[str, Unit]] = []

    def add(self, name: str, unit: Unit) -> None:
        """Schedule a unit of work.

        Args:
            name: Description of the unit, for logging
            unit: Blocking callable returning the unit's outcome
        """
        self._units.append((name, unit))

    def is_empty(self) -> bool:
        return not self._units

    def __len__(self) -> int:
        return len(self._units)

    async def execute(self) -> list[TaskResult]:
        """Run every unit and wait for all of them.

        Returns:
            One result per unit, in the order the units were added
        """
        if not self._units:
            return []

        logger.debug(f"Running {len(self._units)} tasks in {self.name}")
        semaphore = asyncio.Semaphore(self.max_workers)

        async def _run(name: str, unit: Unit) -> DeletionOutcome:
            async with semaphore:
                logger.debug(f"Start: {name}")
                return await asyncio.to_thread(unit)

        outcomes = await asyncio.gather(
            *(_run(name, unit) for name, unit in self._units),
            return_exceptions=True,
        )

        results: list[TaskResult] = []
        for (name, _), outcome in zip(self._units, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error(f"{name} failed: {outcome}")
                results.append(TaskResult(name=name, error=str(outcome) or type(outcome).__name__))
            else:
                results.append(TaskResult(name=name, outcome=outcome))
        return results
