"""
Typed Exception Hierarchy for the Invoicing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Invoice basis refreshes are called from API routes and from background
approval hooks.  Both need to tell a bad request apart from a broken
database without parsing message strings:

    try:
        snapshot = service.refresh(org_id, project_id, "2025-03-03", "2025-03-09")
    except InvalidPeriodError as e:
        api_response(400, code=e.code, start=e.period_start, end=e.period_end)
    except ProjectNotFoundError as e:
        api_response(404, code=e.code, project=e.project_id)
    except InvoiceBasisPersistenceError as e:
        log.error("persistence failed during %s", e.operation)

Every exception carries a ``code`` class attribute and stores its context
as attributes so it survives logging and serialization.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InvoicingError (base)
    |
    +-- ValidationError
    |   +-- InvalidPeriodError
    |   +-- ProjectNotFoundError
    |   +-- InvalidFieldError
    |   +-- UnlockReasonRequiredError
    |
    +-- SourceError
    |   +-- SourceReadError
    |   +-- InvalidSourceValueError
    |
    +-- SnapshotError
    |   +-- SnapshotNotFoundError
    |   +-- SnapshotLockedError
    |   +-- SnapshotNotLockedError
    |   +-- LineNotFoundError
    |   +-- LineNotEditableError
    |
    +-- PersistenceError
        +-- InvoiceBasisPersistenceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                             | When Raised
-------------|----------------------------------|--------------------------------
Validation   | INVALID_PERIOD                   | Bad date format, end < start
             | PROJECT_NOT_FOUND                | Project missing or other org
             | INVALID_FIELD                    | Header/line edit value rejected
             | UNLOCK_REASON_REQUIRED           | Unlock reason shorter than 5
-------------|----------------------------------|--------------------------------
Source       | SOURCE_READ_FAILED               | A source query raised
             | INVALID_SOURCE_VALUE             | Record has unusable number
-------------|----------------------------------|--------------------------------
Snapshot     | SNAPSHOT_NOT_FOUND               | No row for (org, project, period)
             | SNAPSHOT_LOCKED                  | Edit/lock on a locked row
             | SNAPSHOT_NOT_LOCKED              | Unlock on an unlocked row
             | LINE_NOT_FOUND                   | Line id not in snapshot
             | LINE_NOT_EDITABLE                | Diary lines cannot be edited
-------------|----------------------------------|--------------------------------
Persistence  | INVOICE_BASIS_PERSISTENCE_FAILED | lookup/update/insert/reread/commit

A locked snapshot seen during refresh is NOT an error: the refresh returns
the stored row unchanged.
"""


class InvoicingError(Exception):
    """
    Base exception for all invoicing errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "INVOICING_ERROR"


# Validation exceptions


class ValidationError(InvoicingError):
    """Base exception for caller input that cannot be processed."""

    code: str = "VALIDATION_ERROR"


class InvalidPeriodError(ValidationError):
    """Billing period is malformed or ends before it starts."""

    code: str = "INVALID_PERIOD"

    def __init__(self, period_start: str, period_end: str, reason: str):
        self.period_start = period_start
        self.period_end = period_end
        self.reason = reason
        super().__init__(
            f"Invalid period {period_start}..{period_end}: {reason}"
        )


class ProjectNotFoundError(ValidationError):
    """Project does not exist or does not belong to the organization."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str, org_id: str):
        self.project_id = project_id
        self.org_id = org_id
        super().__init__(
            f"Project {project_id} not found or not accessible for org {org_id}"
        )


class InvalidFieldError(ValidationError):
    """A header or line field value was rejected."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class UnlockReasonRequiredError(ValidationError):
    """Unlocking a snapshot requires a written reason."""

    code: str = "UNLOCK_REASON_REQUIRED"

    def __init__(self, min_length: int):
        self.min_length = min_length
        super().__init__(
            f"Unlock reason must be at least {min_length} characters"
        )


# Source exceptions


class SourceError(InvoicingError):
    """Base exception for source store problems."""

    code: str = "SOURCE_ERROR"


class SourceReadError(SourceError):
    """A source query failed; the whole refresh is aborted."""

    code: str = "SOURCE_READ_FAILED"

    def __init__(self, source: str, detail: str):
        self.source = source
        self.detail = detail
        super().__init__(f"Failed to read {source}: {detail}")


class InvalidSourceValueError(SourceError):
    """A source record carries a missing or non-numeric value."""

    code: str = "INVALID_SOURCE_VALUE"

    def __init__(self, table: str, record_id: str, field: str, value: object):
        self.table = table
        self.record_id = record_id
        self.field = field
        self.value = repr(value)
        super().__init__(
            f"{table}/{record_id}: invalid value for {field}: {value!r}"
        )


# Snapshot exceptions


class SnapshotError(InvoicingError):
    """Base exception for invoice basis snapshot workflow errors."""

    code: str = "SNAPSHOT_ERROR"


class SnapshotNotFoundError(SnapshotError):
    """No snapshot exists for the key."""

    code: str = "SNAPSHOT_NOT_FOUND"

    def __init__(self, project_id: str, period_start: str, period_end: str):
        self.project_id = project_id
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(
            f"Invoice basis not found for project {project_id}, "
            f"period {period_start}..{period_end}"
        )


class SnapshotLockedError(SnapshotError):
    """Snapshot is locked and cannot be edited or locked again."""

    code: str = "SNAPSHOT_LOCKED"

    def __init__(self, snapshot_id: str):
        self.snapshot_id = snapshot_id
        super().__init__(f"Invoice basis {snapshot_id} is locked")


class SnapshotNotLockedError(SnapshotError):
    """Snapshot is not locked; nothing to unlock."""

    code: str = "SNAPSHOT_NOT_LOCKED"

    def __init__(self, snapshot_id: str):
        self.snapshot_id = snapshot_id
        super().__init__(f"Invoice basis {snapshot_id} is not locked")


class LineNotFoundError(SnapshotError):
    """Line id does not exist in the snapshot."""

    code: str = "LINE_NOT_FOUND"

    def __init__(self, snapshot_id: str, line_id: str):
        self.snapshot_id = snapshot_id
        self.line_id = line_id
        super().__init__(f"Line {line_id} not found in invoice basis {snapshot_id}")


class LineNotEditableError(SnapshotError):
    """Line type cannot be edited (diary lines are narrative only)."""

    code: str = "LINE_NOT_EDITABLE"

    def __init__(self, line_id: str, line_type: str):
        self.line_id = line_id
        self.line_type = line_type
        super().__init__(f"Line {line_id} of type {line_type} cannot be edited")


# Persistence exceptions


class PersistenceError(InvoicingError):
    """Base exception for database failures."""

    code: str = "PERSISTENCE_ERROR"


class InvoiceBasisPersistenceError(PersistenceError):
    """
    A database call on the invoice_basis table failed.

    ``operation`` is one of ``lookup``, ``update``, ``insert``, ``reread``
    or ``commit``.
    Never retried internally.
    """

    code: str = "INVOICE_BASIS_PERSISTENCE_FAILED"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Failed to {operation} invoice_basis: {detail}")
