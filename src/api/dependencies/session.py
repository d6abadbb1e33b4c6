"""
Per-client output tracking.

Each browser session sees one output at a time. Starting a new generation
replaces whatever was there; a result that arrives after a newer action has
started is not stored, so a slow stale response never overwrites a fresh one.
In-flight provider calls are not cancelled.
"""

import uuid
from typing import Dict, Optional, Tuple, Any
from datetime import datetime, timedelta, timezone
import logging
import threading
from dataclasses import dataclass

from fastapi import Depends

from src.models.manager import ModelManager
from src.models.services.pdf_text import PdfTextExtractor
from src.pipeline.generation.generation import GenerationPipeline
from src.pipeline.generation.types import AppOutput

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OutputSession:
    """Latest generation state for one client session."""
    session_id: str
    current_action_id: str
    output: Optional[AppOutput]
    created_at: datetime
    last_accessed: datetime


class OutputStore:
    """
    Thread-safe in-memory session storage with idle expiry.
    """

    def __init__(self, session_timeout_minutes: int = 60):
        self._sessions: Dict[str, OutputSession] = {}
        self._lock = threading.Lock()
        self.session_timeout = timedelta(minutes=session_timeout_minutes)

    def begin_action(self, session_id: Optional[str] = None) -> Tuple[str, str]:
        """Start a generation for `session_id` (a new one if omitted); clears the previous output."""
        session_id = session_id or str(uuid.uuid4())
        action_id = str(uuid.uuid4())
        now = _now()

        with self._lock:
            self._cleanup_expired_sessions()
            session = self._sessions.get(session_id)
            if session is None:
                self._sessions[session_id] = OutputSession(
                    session_id=session_id,
                    current_action_id=action_id,
                    output=None,
                    created_at=now,
                    last_accessed=now,
                )
            else:
                session.current_action_id = action_id
                session.output = None
                session.last_accessed = now

        return session_id, action_id

    def complete(self, session_id: str, action_id: str, output: AppOutput) -> bool:
        """Store `output` if `action_id` is still the session's latest action."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.current_action_id != action_id:
                logger.info(f"Discarding superseded result for session {session_id}")
                return False
            session.output = output
            session.last_accessed = _now()
            return True

    def is_current(self, session_id: str, action_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            return session is not None and session.current_action_id == action_id

    def get_output(self, session_id: str) -> Optional[AppOutput]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if _now() - session.last_accessed > self.session_timeout:
                del self._sessions[session_id]
                return None
            session.last_accessed = _now()
            return session.output

    def reset(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def _cleanup_expired_sessions(self):
        """Remove expired sessions (called with lock held)."""
        now = _now()
        expired_ids = [
            session_id for session_id, session in self._sessions.items()
            if now - session.last_accessed > self.session_timeout
        ]
        for session_id in expired_ids:
            del self._sessions[session_id]

        if expired_ids:
            logger.info(f"Cleaned up {len(expired_ids)} expired output sessions")

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "active_sessions": len(self._sessions),
                "timeout_minutes": self.session_timeout.total_seconds() / 60,
                "completed_outputs": sum(1 for s in self._sessions.values() if s.output is not None),
            }

# Global output store instance
output_store = OutputStore()

# FastAPI dependency functions
def get_output_store() -> OutputStore:
    return output_store

def get_model_manager() -> ModelManager:
    """FastAPI dependency to get the model manager from app state."""
    from ..main import app_state
    return app_state["model_manager"]

def get_pdf_extractor() -> PdfTextExtractor:
    from ..main import app_state
    return app_state.get("pdf_extractor") or PdfTextExtractor()

def get_pipeline(
    model_manager: ModelManager = Depends(get_model_manager),
    pdf_extractor: PdfTextExtractor = Depends(get_pdf_extractor),
) -> GenerationPipeline:
    """One pipeline per request keeps invocations independent."""
    return GenerationPipeline(model_manager, pdf_extractor)
