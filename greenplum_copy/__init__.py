"""
Bulk loading of partitioned datasets into Greenplum through COPY.

The public entry points mirror the write paths of the Spark data source:
`transactional_copy` swaps a fully loaded staging table in, while
`non_transactional_copy` streams every partition straight into the target.
"""

from .common import RUN_ID, PrintLogger
from .errors import (
    CleanupFailure,
    GreenplumCopyError,
    JobAbortedFailure,
    MalformedIdentifier,
    PartitionCopyFailure,
    PartitionUploadFailure,
    StagingCreationFailure,
    TableAlreadyExists,
    TransferTimeout,
)
from .options import GreenplumOptions, parse_duration
from .partition_copy import copy_partition
from .tables import CanonicalTableName, extract_table_name
from .writer import non_transactional_copy, save, transactional_copy

__all__ = [
    "RUN_ID",
    "CanonicalTableName",
    "CleanupFailure",
    "GreenplumCopyError",
    "GreenplumOptions",
    "JobAbortedFailure",
    "MalformedIdentifier",
    "PartitionCopyFailure",
    "PartitionUploadFailure",
    "PrintLogger",
    "StagingCreationFailure",
    "TableAlreadyExists",
    "TransferTimeout",
    "copy_partition",
    "extract_table_name",
    "non_transactional_copy",
    "parse_duration",
    "save",
    "transactional_copy",
]
