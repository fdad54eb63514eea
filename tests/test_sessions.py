import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from voicescreen.errors import PersistenceError, SessionNotFoundError
from voicescreen.infrastructure.data import MongoConnection, SessionRecorder
from voicescreen.interview.models import ResponseRecord
from voicescreen.interview.scoring import ScoringCoordinator
from voicescreen.interview.testing import MockMongoClient, MockScorer


def make_recorder():
    connection = MongoConnection("mongodb://mock", "voicescreen_test", client_factory=MockMongoClient)
    scorer = MockScorer(ScoringCoordinator(None))
    return SessionRecorder(connection, scorer), connection, scorer


def test_connection_requires_uri():
    with pytest.raises(PersistenceError):
        MongoConnection("", "db")


def test_connection_reference_counting():
    connection = MongoConnection("mongodb://mock", "db", client_factory=MockMongoClient)
    assert not connection.is_open

    connection.acquire()
    connection.acquire()
    assert connection.ref_count == 2
    assert len(MockMongoClient.instances) == 1

    connection.release()
    assert connection.is_open
    connection.release()
    assert not connection.is_open
    assert MockMongoClient.instances[0].closed

    connection.release()
    assert connection.ref_count == 0


def test_connection_context_manager_and_close():
    connection = MongoConnection("mongodb://mock", "db", client_factory=MockMongoClient)
    with connection as db:
        assert db is not None
        assert connection.ref_count == 1
    assert not connection.is_open

    connection.acquire()
    connection.acquire()
    connection.close()
    assert connection.ref_count == 0 and not connection.is_open


def test_collection_requires_open_connection():
    connection = MongoConnection("mongodb://mock", "db", client_factory=MockMongoClient)
    with pytest.raises(PersistenceError):
        connection.collection("sessions")


def test_session_lifecycle():
    recorder, connection, scorer = make_recorder()
    session_id = recorder.create_session("https://rooms.example/abc", "AI INTERVIEW TRANSCRIPT", {"configId": "t"})
    assert ObjectId.is_valid(session_id)

    doc = recorder.get_session(session_id)
    assert doc["status"] == "running"
    assert doc["roomUrl"] == "https://rooms.example/abc"
    assert doc["responses"] == [] and doc["scoring"] is None
    assert doc["id"] == session_id

    recorder.append_response(session_id, ResponseRecord.create("q1", "Why?", "Because I like it"))
    recorder.append_response(session_id, ResponseRecord.create("q2", "How?", "Carefully"))
    result = recorder.finalize_and_score(session_id, "AI INTERVIEW TRANSCRIPT\nQ1: Why?\nA: Because I like it\n")

    doc = recorder.get_session(session_id)
    assert [r["questionId"] for r in doc["responses"]] == ["q1", "q2"]
    assert doc["status"] == "scored"
    assert doc["completedAt"] is not None and doc["scoredAt"] is not None
    assert doc["scoring"]["overallScore"] == result.overall_score
    assert scorer.calls == 1

    recorder.close()
    assert connection.ref_count == 0


def test_score_session_without_transcript():
    recorder, _, scorer = make_recorder()
    session_id = recorder.create_session()
    with pytest.raises(PersistenceError, match="No transcript"):
        recorder.score_session(session_id)
    assert scorer.calls == 0


def test_unknown_and_invalid_session_ids():
    recorder, _, _ = make_recorder()
    recorder.create_session()
    with pytest.raises(SessionNotFoundError):
        recorder.finalize(str(ObjectId()))
    with pytest.raises(SessionNotFoundError):
        recorder.get_session("not-an-id")


def test_driver_errors_become_persistence_errors():
    recorder, _, _ = make_recorder()
    session_id = recorder.create_session()
    MockMongoClient.instances[0]["voicescreen_test"]["sessions"].fail_with = PyMongoError("down")
    with pytest.raises(PersistenceError):
        recorder.append_response(session_id, ResponseRecord.create("q1", "Why?", "Hmm"))
