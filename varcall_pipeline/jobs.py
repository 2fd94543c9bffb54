# -*- coding: utf-8 -*-
"""Job descriptors and the job script writer

A :py:class:`Stage` is one schedulable unit of work: command text plus everything needed to
wrap it into a batch script.  Stages are immutable once built; the :py:class:`ScriptWriter`
serializes them into shell scripts below the run's script directory.
"""

import logging
import os
import re
import typing

import attr

from .base import FilesystemError
from .resource_usage import ResourceUsage

#: Job ID carried by every handle returned from a dry-run submission
DRY_RUN_JOB_ID = "DRY_RUN"

#: Shell options of every job script; a failing command ends the job before its sentinel is written
SHELL_OPTIONS = "set -e -o pipefail"

#: Allowed characters in stage names, which double as file names
_STAGE_NAME_RE = re.compile(r"^[A-Za-z0-9_.+-]+$")


@attr.s(frozen=True, auto_attribs=True)
class JobHandle:
    """Opaque identifier of a submitted job, as assigned by the scheduler"""

    job_id: str

    @property
    def is_dry_run(self) -> bool:
        return self.job_id == DRY_RUN_JOB_ID

    def __str__(self):
        return self.job_id


#: Handle returned for every dry-run submission; it never satisfies a wait
DRY_RUN_HANDLE = JobHandle(DRY_RUN_JOB_ID)


def _check_name(instance, attribute, value):
    if not value or not _STAGE_NAME_RE.match(value):
        raise ValueError(f"invalid stage name {value!r}")


@attr.s(frozen=True, auto_attribs=True)
class Stage:
    """A named unit of work, ready to be written out and submitted"""

    #: Stage name, unique within a run; also the name of the job script
    name: str = attr.ib(validator=_check_name)
    #: Shell command text
    command: str = attr.ib(validator=attr.validators.min_len(1))
    #: Resources requested from the scheduler
    resources: ResourceUsage = attr.ib(validator=attr.validators.instance_of(ResourceUsage))
    #: Handles of the jobs this stage has to wait for
    dependencies: tuple[JobHandle, ...] = attr.ib(converter=tuple, factory=tuple)
    #: Environment modules to load before running the command
    modules: tuple[str, ...] = attr.ib(converter=tuple, factory=tuple)
    #: Path of the file marking successful completion, ``None`` for bookkeeping stages
    sentinel: typing.Optional[str] = None
    #: Whether failure of a dependency should cancel this stage
    kill_on_error: bool = True


class ScriptWriter:
    """Create :py:class:`Stage` objects and write them out as job scripts

    Scripts go to ``<log_dir>/<run_label>/<stage name>.sh``, the scheduler's output to the same
    path with suffix ``.log``.  As ``run_label`` carries the run index, scripts of different runs
    never overwrite each other.
    """

    def __init__(self, log_dir: str, scheduler, run_label: str):
        #: Pipeline log directory
        self.log_dir = log_dir
        #: Scheduler adapter, provides the script directives
        self.scheduler = scheduler
        #: Name of the per-run sub directory, e.g. ``run_3`` or ``dry_run``
        self.run_label = run_label
        self.logger = logging.getLogger(__name__)

    @property
    def script_dir(self) -> str:
        return os.path.join(self.log_dir, self.run_label)

    def script_path(self, name: str) -> str:
        return os.path.join(self.script_dir, name + ".sh")

    def log_path(self, name: str) -> str:
        return os.path.join(self.script_dir, name + ".log")

    def make_job(
        self,
        name: str,
        command: str,
        resources: ResourceUsage,
        dependencies: typing.Iterable[JobHandle] = (),
        modules: typing.Iterable[str] = (),
        sentinel: typing.Optional[str] = None,
        kill_on_error: bool = True,
    ) -> Stage:
        return Stage(
            name=name,
            command=command,
            resources=resources,
            dependencies=tuple(dependencies),
            modules=tuple(modules),
            sentinel=sentinel,
            kill_on_error=kill_on_error,
        )

    def render(self, stage: Stage) -> str:
        """Return job script text for ``stage``"""
        lines = ["#!/bin/bash"]
        lines += self.scheduler.script_directives(stage, self.log_path(stage.name))
        lines.append("")
        if stage.modules:
            lines.append("module load " + " ".join(stage.modules))
            lines.append("")
        lines.append(SHELL_OPTIONS)
        lines.append("")
        lines.append(stage.command)
        return "\n".join(lines) + "\n"

    def write(self, stage: Stage) -> str:
        """Write job script of ``stage`` and return its path"""
        path = self.script_path(stage.name)
        try:
            os.makedirs(self.script_dir, exist_ok=True)
            with open(path, "wt") as outf:
                outf.write(self.render(stage))
        except OSError as e:
            raise FilesystemError(f"could not write job script {path}: {e}") from e
        self.logger.debug("Wrote job script %s", path)
        return path
