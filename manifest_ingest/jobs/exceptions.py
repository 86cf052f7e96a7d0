class JobError(Exception):
    """Base exception for batch job registry errors."""


class JobStateError(JobError):
    """Raised on an attempt to move a job out of a terminal status."""


class JobNotCompletedError(JobError):
    """Raised when results are requested for a job that has not completed."""

    def __init__(self, job_id: str, status: str) -> None:
        super().__init__(f"Job is not completed. Current status: {status}")
        self.job_id = job_id
        self.status = status
