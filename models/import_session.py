"""
Import session schemas.

An ImportSession is created when an import starts (total fixed), mutated
once per row and ends in SUCCESS (no row errors) or ERROR.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class ImportStatus(str, Enum):
    """Lifecycle of an import session."""
    PROGRESS = "progress"
    SUCCESS = "success"
    ERROR = "error"


class ImportKind(str, Enum):
    """Which importer runs the session."""
    PRODUCTS = "products"
    SERIALS = "serials"


class ImportEventType(str, Enum):
    """Events pushed to progress listeners."""
    STARTED = "started"
    ROW_DONE = "row_done"
    ROW_FAILED = "row_failed"
    FINISHED = "finished"
    ABORTED = "aborted"


class ImportLineError(BaseModel):
    """Error attached to one line of the source file (0 for file-level errors)."""

    line: int = Field(..., ge=0)
    message: str


class ImportSession(BaseModel):
    """Progress and outcome of one import run."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    kind: ImportKind = ImportKind.PRODUCTS
    status: ImportStatus = ImportStatus.PROGRESS
    current: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    succeeded: int = Field(default=0, ge=0, description="Rows imported without error")
    errors: list[ImportLineError] = Field(default_factory=list)
    success_message: Optional[str] = None
    aborted: bool = Field(default=False, description="Structural failure, no row was processed")
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def is_finished(self) -> bool:
        return self.status != ImportStatus.PROGRESS

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def error_preview(self, limit: int = 3) -> list[ImportLineError]:
        """First errors, as shown to the end user. The full list stays on the session."""
        return self.errors[:limit]


class ImportEvent(BaseModel):
    """Notification sent to progress listeners."""

    type: ImportEventType
    session_id: str
    current: int
    total: int
    error: Optional[ImportLineError] = None


class ImportSummaryResponse(BaseModel):
    """API response once an import has run."""

    session: ImportSession
    error_preview: list[ImportLineError] = Field(default_factory=list)
