"""
Session store: persists interview sessions, responses and scoring to MongoDB.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import PyMongoError

from ...config import SESSIONS_COLLECTION
from ...errors import PersistenceError, SessionNotFoundError
from ...interview.models import ResponseRecord, ScoringResult
from .mongo import MongoConnection

logger = logging.getLogger("session_recorder")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _object_id(session_id: str) -> ObjectId:
    try:
        return ObjectId(session_id)
    except (InvalidId, TypeError) as e:
        raise SessionNotFoundError(f"Invalid session id: {session_id!r}") from e


class SessionRecorder:
    """
    Mirrors an interview run into the `sessions` collection.

    Documents carry roomUrl, startedAt, completedAt, status
    (running -> completed -> scored), transcript, responses, metadata and
    scoring. Every method is blocking; the orchestrator runs them off the
    event loop. Failures raise PersistenceError.
    """

    def __init__(self, connection: MongoConnection, scorer, collection_name: str = SESSIONS_COLLECTION):
        self.connection = connection
        self.scorer = scorer
        self.collection_name = collection_name
        self._acquired = False

    def _collection(self):
        if not self._acquired:
            self.connection.acquire()
            self._acquired = True
        return self.connection.collection(self.collection_name)

    def close(self):
        if self._acquired:
            self.connection.release()
            self._acquired = False

    def create_session(self, room_url: Optional[str] = None, transcript: str = "",
                       metadata: Optional[Dict[str, Any]] = None) -> str:
        now = _now()
        doc = {
            "roomUrl": room_url,
            "startedAt": now,
            "completedAt": None,
            "status": "running",
            "transcript": transcript or "",
            "responses": [],
            "metadata": metadata or {},
            "scoring": None,
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            result = self._collection().insert_one(doc)
        except PyMongoError as e:
            raise PersistenceError(f"Create session error: {e}") from e
        session_id = str(result.inserted_id)
        logger.info(f"Created session {session_id}")
        return session_id

    def _update(self, session_id: str, update: Dict[str, Any]) -> None:
        update.setdefault("$set", {})["updatedAt"] = _now()
        try:
            result = self._collection().update_one({"_id": _object_id(session_id)}, update)
        except PyMongoError as e:
            raise PersistenceError(f"Update session error: {e}") from e
        if result.matched_count == 0:
            raise SessionNotFoundError(f"Session not found: {session_id}")

    def append_response(self, session_id: str, record: ResponseRecord) -> None:
        self._update(session_id, {"$push": {"responses": record.to_dict()}})
        logger.debug(f"Appended response for {record.question_id} to session {session_id}")

    def finalize(self, session_id: str, transcript: Optional[str] = None) -> None:
        fields: Dict[str, Any] = {"status": "completed", "completedAt": _now()}
        if transcript:
            fields["transcript"] = transcript
        self._update(session_id, {"$set": fields})
        logger.info(f"Finalized session {session_id}")

    def get_session(self, session_id: str) -> Dict[str, Any]:
        try:
            doc = self._collection().find_one({"_id": _object_id(session_id)})
        except PyMongoError as e:
            raise PersistenceError(f"Fetch session error: {e}") from e
        if doc is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        doc["id"] = str(doc.pop("_id"))
        return doc

    def score_session(self, session_id: str) -> ScoringResult:
        """Score the stored transcript and responses, and store the result."""
        doc = self.get_session(session_id)
        transcript = str(doc.get("transcript") or "")
        if not transcript.strip():
            raise PersistenceError("No transcript to score")

        responses = [ResponseRecord.from_dict(r) for r in doc.get("responses") or [] if isinstance(r, dict)]
        result = self.scorer.score(transcript, responses)
        self._update(session_id, {"$set": {
            "scoring": result.to_dict(),
            "status": "scored",
            "scoredAt": _now(),
        }})
        logger.info(f"Scored session {session_id}: {result.overall_score} ({result.decision})")
        return result

    def finalize_and_score(self, session_id: str, transcript: str) -> ScoringResult:
        self.finalize(session_id, transcript)
        return self.score_session(session_id)
