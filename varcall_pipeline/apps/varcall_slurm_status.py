#!/usr/bin/env python
"""Print ``success``, ``running`` or ``failed`` for a Slurm job, for use as a status hook"""

import sys

from ..jobs import JobHandle
from ..scheduler import JobState
from ..scheduler.slurm import SlurmScheduler

#: Output by job state; an unreachable scheduler is reported as still running
STATUS_TEXT = {
    JobState.COMPLETED: "success",
    JobState.PENDING: "running",
    JobState.RUNNING: "running",
    JobState.UNKNOWN: "running",
    JobState.FAILED: "failed",
}


def main(args=None):
    args = sys.argv if args is None else args
    jobid = args[1]
    print(STATUS_TEXT[SlurmScheduler().poll(JobHandle(jobid))])


if __name__ == "__main__":
    sys.exit(main(sys.argv))
