"""Exceptions for scan job operations.

Callers can catch ScanJobError for every job failure, or the specific
subclasses to distinguish a missing job from an illegal transition.
"""


class ScanJobError(Exception):
    """Base exception for scan job errors."""


class JobNotFoundError(ScanJobError):
    """Raised when a scan job doesn't exist in the database.

    Attributes:
        job_id: The ID of the job that was not found.
        operation: The operation that was attempted (e.g., "resume").
    """

    def __init__(self, job_id: str, operation: str) -> None:
        self.job_id = job_id
        self.operation = operation
        super().__init__(f"Cannot {operation} scan job {job_id}: not found")


class JobStateError(ScanJobError):
    """Raised when a job's status does not allow the requested operation.

    Attributes:
        job_id: The job's ID.
        status: The job's current status value.
    """

    def __init__(self, job_id: str, status: str, message: str | None = None) -> None:
        self.job_id = job_id
        self.status = status
        super().__init__(message or f"Scan job {job_id} is {status}")
