# -*- coding: utf-8 -*-
"""Slurm adapter using ``sbatch`` and ``sacct``"""

import subprocess
import typing

from ..base import SchedulerSubmissionError
from ..jobs import JobHandle, Stage
from . import JobState, Scheduler

#: Text of ``sacct`` failing to reach the controller
CONNECTION_TIMEOUT = "Connection timed out"

#: Slurm states counted as pending
PENDING_STATES = ("PENDING", "REQUEUED", "RESIZING")

#: Slurm states counted as running
RUNNING_STATES = ("RUNNING", "CONFIGURING", "COMPLETING", "SUSPENDED")

#: Fields collected by the job metrics stage
METRICS_FORMAT = (
    "JobID,JobName%40,User,Partition,NodeList,State,ExitCode,Submit,Start,End,Elapsed,"
    "TotalCPU,AllocCPUS,ReqMem,MaxRSS,MaxVMSize"
)


def parse_status(text: str) -> JobState:
    """Translate ``sacct --format State`` output into a :py:class:`JobState`

    Checked in order: completed, connection timeout, pending/running; anything else is a
    failure.  Empty output (job not yet known to accounting) is reported as unknown.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    state = lines[0].split()[0] if lines else ""
    if "COMPLETED" in state:
        return JobState.COMPLETED
    elif CONNECTION_TIMEOUT in text:
        return JobState.UNKNOWN
    elif state in PENDING_STATES:
        return JobState.PENDING
    elif state in RUNNING_STATES:
        return JobState.RUNNING
    elif not lines:
        return JobState.UNKNOWN
    else:
        return JobState.FAILED


class SlurmScheduler(Scheduler):
    name = "slurm"

    def __init__(self, partition: typing.Optional[str] = None):
        super().__init__()
        #: Default partition, overridden by the stage's resources
        self.partition = partition

    def script_directives(self, stage: Stage, log_path: str) -> list[str]:
        res = stage.resources
        directives = [
            f"#SBATCH --job-name={stage.name}",
            f"#SBATCH --time={res.time}",
            f"#SBATCH --mem={res.memory}",
            f"#SBATCH --cpus-per-task={res.threads}",
            f"#SBATCH --output={log_path}",
        ]
        if res.partition or self.partition:
            directives.append(f"#SBATCH --partition={res.partition or self.partition}")
        return directives

    def format_dependencies(
        self, handles: typing.Iterable[JobHandle], kill_on_error: bool = True
    ) -> list[str]:
        job_ids = [handle.job_id for handle in handles if not handle.is_dry_run]
        if not job_ids:
            return []
        if kill_on_error:
            return [f"--dependency=afterok:{':'.join(job_ids)}", "--kill-on-invalid-dep=yes"]
        else:
            return [f"--dependency=afterany:{':'.join(job_ids)}", "--kill-on-invalid-dep=no"]

    def _submit(self, script: str, stage: Stage) -> JobHandle:
        cmd = ["sbatch", "--parsable"]
        cmd += self.format_dependencies(stage.dependencies, stage.kill_on_error)
        cmd.append(script)
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise SchedulerSubmissionError(f"could not run sbatch for {stage.name}: {e}") from e
        if result.returncode != 0:
            raise SchedulerSubmissionError(
                f"sbatch failed for {stage.name} (exit code {result.returncode}): "
                f"{result.stderr.strip()}"
            )
        # --parsable prints "<job id>[;<cluster>]"
        job_id = result.stdout.strip().split(";")[0]
        if not job_id:
            raise SchedulerSubmissionError(f"sbatch returned no job ID for {stage.name}")
        return JobHandle(job_id)

    def status_text(self, handle: JobHandle) -> str:
        """Return raw ``sacct`` output for ``handle``, error messages included"""
        result = subprocess.run(
            ["sacct", "--format=State", "--noheader", "-j", handle.job_id],
            capture_output=True,
            text=True,
        )
        return result.stdout + result.stderr

    def poll(self, handle: JobHandle) -> JobState:
        if handle.is_dry_run:
            raise ValueError("cannot query the state of a dry-run job")
        return parse_status(self.status_text(handle))

    def job_metrics_command(self, handles: typing.Iterable[JobHandle], outfile: str) -> str:
        job_ids = ",".join(handle.job_id for handle in handles if not handle.is_dry_run)
        return f"sacct -P --delimiter=',' --format={METRICS_FORMAT} -j {job_ids} > {outfile}"
