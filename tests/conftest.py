"""
Shared fixtures: the app runs in-process against an in-memory Mongo.

Route modules bind `db` at import, so each of them is patched to the same
mongomock_motor database. Sessions are seeded straight into user_sessions,
the way a logged-in browser would already hold one.
"""
import asyncio
import uuid
from datetime import datetime, timezone, timedelta

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

import server
import utils.dependencies
import routes.auth_routes
import routes.classes_routes
import routes.quiz_routes
import routes.assignment_routes
import routes.candidate_routes

PATCHED_MODULES = [
    server,
    utils.dependencies,
    routes.auth_routes,
    routes.classes_routes,
    routes.quiz_routes,
    routes.assignment_routes,
    routes.candidate_routes,
]


def run(coro):
    """Run a database coroutine from synchronous test code"""
    return asyncio.run(coro)


def iso_in(**delta):
    return (datetime.now(timezone.utc) + timedelta(**delta)).isoformat()


@pytest.fixture
def mock_db(monkeypatch):
    database = AsyncMongoMockClient()[f"theodoraq_test_{uuid.uuid4().hex[:8]}"]
    for module in PATCHED_MODULES:
        monkeypatch.setattr(module, "db", database)
    return database


@pytest.fixture
def client(mock_db):
    # No context manager: the submission consumer stays stopped in route tests
    return TestClient(server.app)


@pytest.fixture
def make_user(mock_db):
    """Insert a user with a live session. Returns the user doc plus auth headers"""
    def _make(role="admin", name=None, email=None, registration_number=None, expired=False):
        user_id = f"user_{uuid.uuid4().hex[:12]}"
        user_doc = {
            "user_id": user_id,
            "email": email or f"{user_id}@example.com",
            "name": name or f"Test {role.title()}",
            "role": role,
            "registration_number": registration_number,
            "display_name": name,
            "created_at": datetime.now(timezone.utc).isoformat()
        }
        token = f"pytest_{uuid.uuid4().hex}"
        run(mock_db.users.insert_one(dict(user_doc)))
        run(mock_db.user_sessions.insert_one({
            "user_id": user_id,
            "session_token": token,
            "expires_at": iso_in(days=-1) if expired else iso_in(days=7),
            "created_at": datetime.now(timezone.utc).isoformat()
        }))
        user_doc["token"] = token
        user_doc["headers"] = {"Authorization": f"Bearer {token}"}
        return user_doc
    return _make


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", name="Dr. Ada Admin")


@pytest.fixture
def make_quiz(client):
    def _make(admin_user, questions=None, title="Week 1 Quiz"):
        if questions is None:
            questions = [
                {"id": "q1", "text": "2 + 2 = ?", "type": "multiple_choice", "options": ["3", "4"], "answer": "4"},
                {"id": "q2", "text": "The sky is green", "type": "true_false", "options": ["True", "False"], "answer": "False"},
                {"id": "q3", "text": "Capital of France", "type": "short_answer", "answer": "Paris"},
                {"id": "q4", "text": "5 * 3 = ?", "type": "multiple_choice", "options": ["15", "53"], "answer": "15"},
            ]
        response = client.post("/api/quizzes", json={"title": title, "questions": questions}, headers=admin_user["headers"])
        assert response.status_code == 201, response.text
        return response.json()["quiz"]
    return _make


@pytest.fixture
def make_class(client):
    def _make(admin_user, title="Data Structures", course_code="cs201"):
        response = client.post(
            "/api/classes",
            json={"title": title, "course_code": course_code, "description": "Autumn cohort"},
            headers=admin_user["headers"]
        )
        assert response.status_code == 201, response.text
        return response.json()["class"]
    return _make


@pytest.fixture
def enroll(client):
    def _enroll(candidate, cls):
        response = client.post("/api/classes/join", json={"invite_code": cls["invite_code"]}, headers=candidate["headers"])
        assert response.status_code == 200, response.text
        return response.json()["class"]
    return _enroll


@pytest.fixture
def make_assignment(client):
    def _make(admin_user, quiz, cls, **overrides):
        payload = {
            "quiz_id": quiz["id"],
            "class_id": cls["id"],
            "due_date": iso_in(days=3),
            "time_limit": 30,
            "weightage": 20,
            "weightage_type": "percentage",
        }
        payload.update(overrides)
        response = client.post("/api/assignments", json=payload, headers=admin_user["headers"])
        assert response.status_code == 201, response.text
        return response.json()["assignment"]
    return _make
