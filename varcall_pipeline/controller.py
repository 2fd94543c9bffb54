# -*- coding: utf-8 -*-
"""Run controller: one end-to-end invocation of a pipeline

The controller loads and validates both configuration documents, claims a run index in the
pipeline's log directory, builds and submits the job graph and finally submits a job collecting
the scheduler's accounting metrics of all jobs.  Unless told otherwise, it then blocks until that
last job has finished.
"""

import glob
import logging
import os
import time
import typing

from .base import FilesystemError, InvalidConfiguration, StageFailure, TransientPollError
from .config import load_sample_manifest, load_tool_config
from .graph import BasePipeline, PipelineGraphBuilder, RunState
from .jobs import JobHandle, ScriptWriter
from .resource_usage import BOOKKEEPING_RESOURCES
from .scheduler import JobState, Scheduler, get_scheduler
from .utils import unique

#: Environment variable injecting the run index
RUN_INDEX_ENV = "VARCALL_RUN_INDEX"

#: Prefix of the metrics placeholder files, one per run
METRICS_PREFIX = "slurm_job_metrics"

#: Seconds between two status queries
POLL_INTERVAL = 30

#: Number of consecutive failed status queries before giving up
MAX_TIMEOUTS = 20


def metrics_path(log_dir: str, run_index: int) -> str:
    return os.path.join(log_dir, f"{METRICS_PREFIX}_{run_index}.out")


def claim_run_index(log_dir: str, requested: typing.Optional[int] = None) -> int:
    """Claim the next run index in ``log_dir`` and create its metrics placeholder

    Without ``requested``, the index is the number of existing metrics files plus one, bumped
    until the placeholder can be created exclusively.  A ``requested`` index must not have been
    used before.
    """
    if requested is not None:
        if requested < 1:
            raise InvalidConfiguration(f"run index must be positive, got {requested}")
        candidates = [requested]
    else:
        start = len(glob.glob(os.path.join(log_dir, METRICS_PREFIX + "*"))) + 1
        candidates = range(start, start + 10_000)
    for run_index in candidates:
        path = metrics_path(log_dir, run_index)
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            continue
        except OSError as e:
            raise FilesystemError(f"could not create metrics file {path}: {e}") from e
        os.close(fd)
        return run_index
    raise FilesystemError(f"run index {requested} in {log_dir} is already in use")


def wait_for_completion(
    scheduler: Scheduler,
    handle: JobHandle,
    interval: float = POLL_INTERVAL,
    max_timeouts: int = MAX_TIMEOUTS,
    sleep: typing.Callable[[float], typing.Any] = time.sleep,
):
    """Block until the job ``handle`` has completed

    An unknown state (scheduler not reachable) counts as a timeout; a pending or running job
    resets the timeout counter.  Raises ``TransientPollError`` after ``max_timeouts`` consecutive
    timeouts and ``StageFailure`` if the job ends in any other state.
    """
    if handle.is_dry_run:
        raise ValueError("a dry-run job never completes")
    logger = logging.getLogger(__name__)
    timeouts = 0
    while timeouts < max_timeouts:
        sleep(interval)
        state = scheduler.poll(handle)
        if state == JobState.COMPLETED:
            logger.info("Job %s completed", handle)
            return
        elif state == JobState.UNKNOWN:
            timeouts += 1
            logger.warning("Could not query job %s (%d/%d)", handle, timeouts, max_timeouts)
        elif state in (JobState.PENDING, JobState.RUNNING):
            timeouts = 0
        else:
            raise StageFailure(f"final job {handle} ended in state {state}", job_id=handle.job_id)
    raise TransientPollError(
        f"gave up waiting for job {handle} after {max_timeouts} failed status queries"
    )


class RunController:
    """Sequence one invocation of ``pipeline_cls``"""

    def __init__(
        self,
        pipeline_cls: type[BasePipeline],
        tool_config_path: str,
        data_config_path: str,
        out_dir: str,
        cluster: str = "slurm",
        partition: typing.Optional[str] = None,
        remove: bool = False,
        dry_run: bool = False,
        no_wait: bool = False,
        dependencies: typing.Iterable[str] = (),
        run_index: typing.Optional[int] = None,
        pipeline_kwargs: typing.Optional[dict] = None,
        scheduler: typing.Optional[Scheduler] = None,
        sleep: typing.Callable[[float], typing.Any] = time.sleep,
    ):
        self.pipeline_cls = pipeline_cls
        self.tool_config_path = tool_config_path
        self.data_config_path = data_config_path
        self.out_dir = os.path.abspath(out_dir)
        self.cluster = cluster
        self.partition = partition
        self.remove = remove
        self.dry_run = dry_run
        self.no_wait = no_wait
        self.dependencies = [JobHandle(job_id) for job_id in dependencies if job_id]
        self.run_index = run_index
        self.pipeline_kwargs = pipeline_kwargs or {}
        self.scheduler = scheduler
        self.sleep = sleep
        self.logger = logging.getLogger(__name__)

    def requested_run_index(self) -> typing.Optional[int]:
        if self.run_index is not None:
            return self.run_index
        value = os.environ.get(RUN_INDEX_ENV)
        if not value:
            return None
        try:
            return int(value)
        except ValueError as e:
            raise InvalidConfiguration(f"{RUN_INDEX_ENV} must be an integer, got {value!r}") from e

    def run(self) -> RunState:
        config = load_tool_config(self.tool_config_path)
        manifest = load_sample_manifest(self.data_config_path)
        scheduler = self.scheduler or get_scheduler(self.cluster, partition=self.partition)
        pipeline = self.pipeline_cls(config, self.out_dir, **self.pipeline_kwargs)

        log_dir = pipeline.log_dir
        try:
            os.makedirs(log_dir, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"could not create log directory {log_dir}: {e}") from e

        if self.dry_run:
            run_index = None
            run_label = "dry_run"
            log_file = os.path.join(log_dir, f"run_{pipeline.name}_pipeline.log")
        else:
            run_index = claim_run_index(log_dir, self.requested_run_index())
            run_label = f"run_{run_index}"
            log_file = os.path.join(log_dir, f"run_{pipeline.name}_pipeline_{run_index}.log")

        handler = self._open_log(log_file)
        root = logging.getLogger()
        root_level = root.level
        if root.getEffectiveLevel() > logging.INFO:
            root.setLevel(logging.INFO)
        try:
            self.logger.info("Running %s pipeline, run %s", pipeline.name, run_index or "dry run")
            self.logger.info("Tool config: %s", self.tool_config_path)
            self.logger.info("Sample config: %s", self.data_config_path)
            self.logger.info("Output directory: %s", self.out_dir)
            writer = ScriptWriter(log_dir, scheduler, run_label)
            builder = PipelineGraphBuilder(
                pipeline,
                writer,
                scheduler,
                dry_run=self.dry_run,
                initial_dependencies=self.dependencies,
                remove=self.remove,
            )
            state = builder.build(manifest, run_index=run_index)
            if self.dry_run or not state.all_jobs:
                return state
            state.metrics_job = self.submit_metrics(builder, state, log_dir)
            if not self.no_wait:
                wait_for_completion(scheduler, state.metrics_job, sleep=self.sleep)
            self.logger.info("Pipeline terminated successfully.")
            return state
        finally:
            root.removeHandler(handler)
            root.setLevel(root_level)
            handler.close()

    def submit_metrics(
        self, builder: PipelineGraphBuilder, state: RunState, log_dir: str
    ) -> JobHandle:
        """Submit the job collecting accounting metrics of all jobs of this run"""
        dependencies = unique(state.all_jobs + state.fan_in_jobs)
        stage = builder.writer.make_job(
            f"output_job_metrics_{state.run_index}",
            builder.scheduler.job_metrics_command(
                dependencies, metrics_path(log_dir, state.run_index)
            ),
            BOOKKEEPING_RESOURCES,
            dependencies=dependencies,
            kill_on_error=False,
        )
        script = builder.writer.write(stage)
        self.logger.info("Submitting job to collect job metrics...")
        return builder.scheduler.submit(script, stage, dry_run=self.dry_run)

    def _open_log(self, path: str) -> logging.Handler:
        try:
            handler = logging.FileHandler(path, mode="w")
        except OSError as e:
            raise FilesystemError(f"could not open log file {path}: {e}") from e
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(name)-12s %(levelname)-8s %(message)s")
        )
        handler.setLevel(logging.INFO)
        logging.getLogger().addHandler(handler)
        return handler
