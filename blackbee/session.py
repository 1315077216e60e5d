"""
Analysis Session State Machine

IDLE -> ANALYZING -> COMPLETE | ERROR, with reset back to IDLE.
One session holds at most one image and runs at most one analysis at a time.
"""

import logging
import time
from collections import OrderedDict
from typing import Callable, Dict, Optional, Protocol
from uuid import uuid4

from blackbee import config
from blackbee.errors import AnalysisFailed, BlackBeeError
from blackbee.image_loader import PreviewStore, load_image
from blackbee.models import AnalysisResult, AnalysisStatus, ImagePayload

logger = logging.getLogger(__name__)


class Analyzer(Protocol):
    async def analyze(self, encoded_data: str, content_type: str) -> AnalysisResult:
        ...


class AnalysisSession:
    """
    Mutable state for one browser session.

    Attributes:
        status: Current AnalysisStatus
        payload: Selected image, if any
        result: Verdict, only present in COMPLETE
        error_message: User-visible message; an analysis failure in ERROR,
            or a rejected selection (status untouched)
    """

    def __init__(self, session_id: str, previews: PreviewStore):
        self.session_id = session_id
        self.previews = previews
        self.status = AnalysisStatus.IDLE
        self.payload: Optional[ImagePayload] = None
        self.result: Optional[AnalysisResult] = None
        self.error_message: Optional[str] = None

    @property
    def is_analyzing(self) -> bool:
        return self.status == AnalysisStatus.ANALYZING

    def select(self, data: bytes, content_type: Optional[str], filename: str) -> bool:
        """
        Replace the current image.

        Returns:
            True if a new payload was stored. False if the file was rejected
            (error_message is set, everything else unchanged) or an analysis
            is in flight.
        """
        if self.is_analyzing:
            logger.warning(f"[{self.session_id}] Ignoring upload while analysis is running")
            return False

        try:
            payload = load_image(data, content_type, filename, self.previews)
        except BlackBeeError as e:
            logger.warning(f"[{self.session_id}] Rejected {filename}: {str(e)}")
            self.error_message = e.user_message
            return False

        self._release_payload()
        self.payload = payload
        self.result = None
        self.error_message = None
        self.status = AnalysisStatus.IDLE
        return True

    async def start_analysis(self, analyzer: Analyzer) -> bool:
        """
        Analyze the current payload.

        No-op without a payload or while another analysis is running.
        The gate and the ANALYZING transition happen before the first await.

        Returns:
            True if an analysis was run (whatever its outcome)
        """
        if self.payload is None:
            logger.warning(f"[{self.session_id}] start_analysis without an image")
            return False
        if self.is_analyzing:
            logger.warning(f"[{self.session_id}] Analysis already running, ignoring trigger")
            return False

        payload = self.payload
        self.status = AnalysisStatus.ANALYZING
        self.result = None
        self.error_message = None

        try:
            result = await analyzer.analyze(payload.encoded_data, payload.content_type)
        except AnalysisFailed as e:
            logger.error(f"[{self.session_id}] Analysis failed: {str(e)}")
            self.error_message = e.user_message
            self.status = AnalysisStatus.ERROR
            return True
        except BaseException:
            # Cancelled or unexpected: never leave the session stuck in ANALYZING
            logger.error(f"[{self.session_id}] Analysis aborted", exc_info=True)
            self.error_message = AnalysisFailed.user_message
            self.status = AnalysisStatus.ERROR
            raise

        self.result = result
        self.status = AnalysisStatus.COMPLETE
        return True

    def reset(self) -> bool:
        """
        Drop image, result and error; back to IDLE.

        Returns:
            False (and nothing changes) while an analysis is in flight
        """
        if self.is_analyzing:
            logger.warning(f"[{self.session_id}] Ignoring reset while analysis is running")
            return False

        self._release_payload()
        self.payload = None
        self.result = None
        self.error_message = None
        self.status = AnalysisStatus.IDLE
        return True

    def dismiss_error(self) -> None:
        """Clear a rejected-selection message. Analysis errors stay until reset or re-run."""
        if self.status != AnalysisStatus.ERROR:
            self.error_message = None

    def _release_payload(self) -> None:
        if self.payload is not None:
            self.previews.release(self.payload.preview_token)


class SessionManager:
    """
    Maps session ids (cookie values) to AnalysisSession instances.

    Sessions idle longer than idle_ttl_seconds are dropped, and once more than
    max_sessions exist the least recently used ones go first. Dropping a
    session releases its preview. Sessions with an analysis in flight are
    never dropped.
    """

    def __init__(
        self,
        previews: Optional[PreviewStore] = None,
        max_sessions: int = config.MAX_SESSIONS,
        idle_ttl_seconds: float = config.SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.previews = previews if previews is not None else PreviewStore()
        self.max_sessions = max_sessions
        self.idle_ttl_seconds = idle_ttl_seconds
        self.clock = clock
        self.sessions: "OrderedDict[str, AnalysisSession]" = OrderedDict()
        self.last_seen: Dict[str, float] = {}

    def get_session(self, session_id: Optional[str]) -> AnalysisSession:
        now = self.clock()
        self._evict_idle(now)

        session = self.sessions.get(session_id) if session_id else None
        if session is None:
            session = AnalysisSession(uuid4().hex, self.previews)
            self.sessions[session.session_id] = session
            logger.info(f"Created session {session.session_id}")

        self.sessions.move_to_end(session.session_id)
        self.last_seen[session.session_id] = now
        self._evict_overflow(keep=session.session_id)
        return session

    def _evict_idle(self, now: float) -> None:
        expired = [
            sid for sid, seen in self.last_seen.items()
            if now - seen > self.idle_ttl_seconds and not self.sessions[sid].is_analyzing
        ]
        for sid in expired:
            self._drop(sid)

    def _evict_overflow(self, keep: str) -> None:
        # Oldest first
        for sid in list(self.sessions):
            if len(self.sessions) <= self.max_sessions:
                break
            if sid != keep and not self.sessions[sid].is_analyzing:
                self._drop(sid)

    def _drop(self, session_id: str) -> None:
        session = self.sessions.pop(session_id)
        self.last_seen.pop(session_id, None)
        session.reset()
        logger.info(f"Dropped session {session_id}")

    def __len__(self) -> int:
        return len(self.sessions)
