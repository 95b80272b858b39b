"""
Import progress and error tracking.

ImportProgressTracker drives one ImportSession through
progress → success | error and pushes an ImportEvent to every listener
it was built with. Listeners are plain callables; the tracker holds no
global state.

ImportSessionStore keeps finished and running sessions in memory so the
HTTP layer can serve them by id.
"""

from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Iterable, Optional
import structlog

from exceptions import AppError, ImportSessionNotFoundError
from models.import_session import (
    ImportEvent,
    ImportEventType,
    ImportKind,
    ImportLineError,
    ImportSession,
    ImportStatus,
)

logger = structlog.get_logger(__name__)

ImportListener = Callable[[ImportEvent], None]


class ImportStateError(AppError):
    """Tracker method called in the wrong session state."""

    def __init__(self, message: str):
        super().__init__(code="IMPORT_STATE_ERROR", message=message, status_code=500)


class ImportProgressTracker:
    """
    Progress/error tracker for one import run.

    Usage:
        tracker = ImportProgressTracker(ImportKind.PRODUCTS, listeners=[print])
        tracker.start(total=10)
        tracker.record_success()
        tracker.advance()
        tracker.record_error(3, "Champs obligatoires manquants: sku")
        tracker.advance()
        session = tracker.finish("1 produits importés avec succès")
    """

    def __init__(
        self,
        kind: ImportKind = ImportKind.PRODUCTS,
        listeners: Optional[Iterable[ImportListener]] = None,
    ):
        self.session = ImportSession(kind=kind)
        self.listeners: list[ImportListener] = list(listeners or [])
        self._started = False

    # ===================
    # STATE TRANSITIONS
    # ===================

    def start(self, total: int) -> ImportSession:
        """Fix the row total and enter the progress state."""
        if self._started:
            raise ImportStateError("Import session already started")
        self._started = True
        self.session.total = total
        self.session.current = 0

        logger.info(
            "import_started",
            session_id=self.session.id,
            kind=self.session.kind.value,
            total=total
        )
        self._emit(ImportEventType.STARTED)
        return self.session

    def advance(self) -> int:
        """Move progress forward by one row."""
        self._require_progress()
        if self.session.current >= self.session.total:
            raise ImportStateError("Import progress beyond total rows")
        self.session.current += 1
        self._emit(ImportEventType.ROW_DONE)
        return self.session.current

    def record_success(self) -> int:
        """Count one row imported without error."""
        self._require_progress()
        self.session.succeeded += 1
        return self.session.succeeded

    def record_error(self, line: int, message: str) -> ImportLineError:
        """Attach an error to a source line."""
        self._require_progress()
        error = ImportLineError(line=line, message=message)
        self.session.errors.append(error)
        self._emit(ImportEventType.ROW_FAILED, error)
        return error

    def finish(self, success_message: Optional[str] = None) -> ImportSession:
        """
        Close the session.

        Status is SUCCESS when no row failed, ERROR otherwise. The
        success message is kept either way so callers can show counts.
        """
        self._require_progress()
        session = self.session
        session.status = ImportStatus.ERROR if session.errors else ImportStatus.SUCCESS
        session.success_message = success_message
        session.finished_at = datetime.now(timezone.utc)

        logger.info(
            "import_finished",
            session_id=session.id,
            status=session.status.value,
            total=session.total,
            errors=session.error_count
        )
        self._emit(ImportEventType.FINISHED)
        return session

    def abort(self, errors: Iterable[ImportLineError]) -> ImportSession:
        """
        End the session in ERROR before (or instead of) processing rows.

        Used for structural failures; no row has been committed.
        """
        if self.session.is_finished:
            raise ImportStateError("Import session already finished")
        self._started = True
        session = self.session
        session.errors.extend(errors)
        session.status = ImportStatus.ERROR
        session.aborted = True
        session.finished_at = datetime.now(timezone.utc)

        logger.warning(
            "import_aborted",
            session_id=session.id,
            kind=session.kind.value,
            errors=[e.message for e in session.errors]
        )
        self._emit(ImportEventType.ABORTED)
        return session

    # ===================
    # HELPER METHODS
    # ===================

    def _require_progress(self) -> None:
        if not self._started:
            raise ImportStateError("Import session not started")
        if self.session.is_finished:
            raise ImportStateError("Import session already finished")

    def _emit(self, event_type: ImportEventType, error: Optional[ImportLineError] = None) -> None:
        event = ImportEvent(
            type=event_type,
            session_id=self.session.id,
            current=self.session.current,
            total=self.session.total,
            error=error,
        )
        for listener in self.listeners:
            listener(event)


class ImportSessionStore:
    """In-memory registry of import sessions, keyed by session id."""

    def __init__(self):
        self._sessions: dict[str, ImportSession] = {}
        self._lock = Lock()

    def save(self, session: ImportSession) -> None:
        with self._lock:
            self._sessions[session.id] = session

    def get(self, session_id: str) -> ImportSession:
        """
        Raises:
            ImportSessionNotFoundError: Unknown id
        """
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise ImportSessionNotFoundError(session_id)
        return session

    def list_sessions(self) -> list[ImportSession]:
        """All sessions, most recent first."""
        with self._lock:
            sessions = list(self._sessions.values())
        return sorted(sessions, key=lambda s: s.started_at, reverse=True)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def attach(self, tracker: ImportProgressTracker) -> None:
        """Register the tracker's session now and re-save it on every event."""
        self.save(tracker.session)
        tracker.listeners.append(lambda event: self.save(tracker.session))


# Singleton instance for convenience
_import_session_store: Optional[ImportSessionStore] = None

def get_import_session_store() -> ImportSessionStore:
    """Get or create ImportSessionStore instance."""
    global _import_session_store
    if _import_session_store is None:
        _import_session_store = ImportSessionStore()
    return _import_session_store
