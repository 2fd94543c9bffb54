# -*- coding: utf-8 -*-
"""Batch scheduler adapters

A :py:class:`Scheduler` submits job scripts, encodes dependencies in its own syntax, and reports
job states.  Dry-run submissions never reach the concrete back end.
"""

import enum
import logging
import typing

from ..base import InvalidConfiguration
from ..jobs import DRY_RUN_HANDLE, JobHandle, Stage


class JobState(enum.StrEnum):
    """State of a submitted job as reported by the scheduler"""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    #: Scheduler could not be queried, e.g., connection timeout
    UNKNOWN = "UNKNOWN"


class Scheduler:
    """Base class for the scheduler adapters"""

    #: Name used for selecting the scheduler on the command line
    name: typing.ClassVar[str]

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def script_directives(self, stage: Stage, log_path: str) -> list[str]:
        """Return header lines requesting the resources of ``stage``"""
        raise NotImplementedError("Override me!")  # pragma: no cover

    def format_dependencies(
        self, handles: typing.Iterable[JobHandle], kill_on_error: bool = True
    ) -> list[str]:
        """Return submission arguments making a job wait for ``handles``

        Dry-run handles are ignored; no arguments are returned for an empty dependency set.
        """
        raise NotImplementedError("Override me!")  # pragma: no cover

    def submit(self, script: str, stage: Stage, dry_run: bool = False) -> JobHandle:
        """Submit job ``script`` for ``stage``, returning ``DRY_RUN_HANDLE`` in dry-run mode"""
        if dry_run:
            self.logger.info("Dry run: not submitting %s", stage.name)
            return DRY_RUN_HANDLE
        handle = self._submit(script, stage)
        self.logger.info("Submitted %s as job %s", stage.name, handle)
        return handle

    def _submit(self, script: str, stage: Stage) -> JobHandle:
        raise NotImplementedError("Override me!")  # pragma: no cover

    def poll(self, handle: JobHandle) -> JobState:
        raise NotImplementedError("Override me!")  # pragma: no cover

    def job_metrics_command(self, handles: typing.Iterable[JobHandle], outfile: str) -> str:
        """Return command writing accounting metrics of ``handles`` to ``outfile``"""
        raise NotImplementedError("Override me!")  # pragma: no cover


def _registry() -> dict[str, type[Scheduler]]:
    from .slurm import SlurmScheduler

    return {SlurmScheduler.name: SlurmScheduler}


def get_scheduler(name: str, **kwargs) -> Scheduler:
    """Return scheduler adapter registered under ``name``"""
    registry = _registry()
    if name not in registry:
        raise InvalidConfiguration(
            f"unknown cluster/scheduler {name!r}; choose from {sorted(registry)}"
        )
    return registry[name](**kwargs)


__all__ = ["JobState", "Scheduler", "get_scheduler"]
