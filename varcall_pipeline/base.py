# -*- coding: utf-8 -*-
"""Exceptions raised by varcall_pipeline
"""


class PipelineError(Exception):
    """Base class for all fatal errors raised by the pipeline"""


class InvalidConfiguration(PipelineError):
    """Raised on invalid configuration"""


class MissingConfiguration(InvalidConfiguration):
    """Raised on missing configuration"""


class UnsupportedReferenceBuild(InvalidConfiguration):
    """Raised when the configured reference build tag is not recognized"""


class FilesystemError(PipelineError):
    """Raised when log directories, log files or metrics placeholders cannot be created"""


class SchedulerSubmissionError(PipelineError):
    """Raised when the batch scheduler rejects a job submission"""


class TransientPollError(PipelineError):
    """Raised when the scheduler could not be reached too many consecutive times"""


class StageFailure(PipelineError):
    """Raised when a waited-for job finished in a state other than completed"""

    def __init__(self, msg: str, job_id: str | None = None):
        super().__init__(msg)
        #: Scheduler job identifier of the offending job
        self.job_id = job_id

