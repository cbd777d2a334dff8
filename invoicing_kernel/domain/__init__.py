"""
Pure domain layer.

Immutable DTOs and the clock abstraction, with NO dependencies on
the ORM, the database or I/O.
"""

from invoicing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from invoicing_kernel.domain.lines import (
    AtaInfo,
    DiarySummary,
    InvoiceBasisLine,
    LineType,
    SourceRef,
    lines_payload,
)
from invoicing_kernel.domain.records import (
    AtaRecord,
    CustomerRecord,
    DiaryEntryRecord,
    ExpenseRecord,
    MaterialRecord,
    MileageRecord,
    ProjectRecord,
    RateTable,
    SourceBundle,
    TimeEntryRecord,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "AtaInfo",
    "DiarySummary",
    "InvoiceBasisLine",
    "LineType",
    "SourceRef",
    "lines_payload",
    "AtaRecord",
    "CustomerRecord",
    "DiaryEntryRecord",
    "ExpenseRecord",
    "MaterialRecord",
    "MileageRecord",
    "ProjectRecord",
    "RateTable",
    "SourceBundle",
    "TimeEntryRecord",
]
