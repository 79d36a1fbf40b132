"""Exception taxonomy for Greenplum bulk loads."""

from __future__ import annotations


class GreenplumCopyError(Exception):
    """Base class for every failure raised by the loader."""


class MalformedIdentifier(GreenplumCopyError, ValueError):
    """The configured table name is not `name` or `schema.name`."""


class StagingCreationFailure(GreenplumCopyError):
    """Creating the staging table failed; no partition was attempted."""


class PartitionUploadFailure(GreenplumCopyError):
    """One partition could not be encoded or copied."""


class TransferTimeout(GreenplumCopyError, TimeoutError):
    """The COPY stream of one partition exceeded `copyTimeout`."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            "The copy operation for copying this partition's data to greenplum has been running "
            f"for more than the timeout: {int(timeout_seconds)}s. "
            'You can configure this timeout with option copyTimeout, such as "2h", "100min", '
            'and default copyTimeout is "1h".'
        )


class PartitionCopyFailure(GreenplumCopyError):
    """Some partitions failed, so the job was aborted."""

    def __init__(self, total: int, succeeded: int) -> None:
        self.total = total
        self.succeeded = succeeded
        super().__init__(
            "Job aborted for that there are some partitions failed to copy data to greenplum: "
            f"Total partitions is: {total} and successful partitions is: {succeeded}. "
            "You can retry again."
        )


JobAbortedFailure = PartitionCopyFailure


class CleanupFailure(GreenplumCopyError):
    """Dropping a staging table kept failing. Logged, never raised by cleanup."""


class TableAlreadyExists(GreenplumCopyError):
    """Save mode `errorifexists` found the target table."""
