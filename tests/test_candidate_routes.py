"""
Test Suite for the candidate quiz flow and roster invitations

Tests:
- Assignment list for a class - GET /api/candidate/assignments/{class_id}
- Taking a quiz - GET /api/candidate/assignment/{assignment_id}
- Submitting a quiz - POST /api/candidate/submit-quiz/{assignment_id}
- Roster preview, invites and template - /api/candidate/parse-file, send-invites, bulk-invite, download-template
"""
import io

import pytest
from openpyxl import Workbook, load_workbook

import routes.candidate_routes
from services.email_service import EmailServiceError
from conftest import run, iso_in

ANSWERS = {"q1": "4", "q2": "False", "q3": "paris", "q4": "15"}


@pytest.fixture
def setup(admin, make_quiz, make_class, make_user, enroll):
    cls = make_class(admin)
    quiz = make_quiz(admin)
    candidate = make_user(role="candidate", name="Ann Lee", registration_number="22BCE10100")
    enroll(candidate, cls)
    return cls, quiz, candidate


class TestCandidateAssignments:
    def test_lists_only_eligible_assignments(self, client, admin, setup, make_assignment):
        cls, quiz, candidate = setup
        open_to_all = make_assignment(admin, quiz, cls)
        for_bce = make_assignment(admin, quiz, cls, subgroup="BCE,MIM")
        make_assignment(admin, quiz, cls, subgroup="BAI")
        make_assignment(admin, quiz, cls, subgroup="BCE", subclasses=["2"])

        response = client.get(f"/api/candidate/assignments/{cls['id']}", headers=candidate["headers"])
        assert response.status_code == 200
        ids = {a["id"] for a in response.json()["assignments"]}
        assert ids == {open_to_all["id"], for_bce["id"]}
        print("✓ Subgroup filters applied to candidate list")

    def test_status_fields(self, client, admin, setup, make_assignment):
        cls, quiz, candidate = setup
        assignment = make_assignment(admin, quiz, cls)
        client.post(f"/api/candidate/submit-quiz/{assignment['id']}", json={"answers": ANSWERS}, headers=candidate["headers"])

        item = client.get(f"/api/candidate/assignments/{cls['id']}", headers=candidate["headers"]).json()["assignments"][0]
        assert item["has_submitted"] is True
        assert item["question_count"] == 4
        assert item["is_past_due"] is False
        # Scores stay hidden until the class shows results
        assert item["submission_score"] is None

        client.put(f"/api/classes/{cls['id']}", json={"show_results": True}, headers=admin["headers"])
        item = client.get(f"/api/candidate/assignments/{cls['id']}", headers=candidate["headers"]).json()["assignments"][0]
        assert item["submission_score"] == 100.0

    def test_not_enrolled_or_not_candidate(self, client, admin, setup, make_user):
        cls, _, _ = setup
        outsider = make_user(role="candidate")
        assert client.get(f"/api/candidate/assignments/{cls['id']}", headers=outsider["headers"]).status_code == 404
        assert client.get(f"/api/candidate/assignments/{cls['id']}", headers=admin["headers"]).status_code == 403


class TestTakeQuiz:
    def test_answers_are_stripped(self, client, admin, setup, make_assignment):
        cls, quiz, candidate = setup
        assignment = make_assignment(admin, quiz, cls, proctoring_enabled=True)

        response = client.get(f"/api/candidate/assignment/{assignment['id']}", headers=candidate["headers"])
        assert response.status_code == 200
        data = response.json()["assignment"]
        assert len(data["questions"]) == 4
        assert all("answer" not in q for q in data["questions"])
        assert {q["id"] for q in data["questions"]} == {"q1", "q2", "q3", "q4"}
        assert data["time_limit"] == 30
        assert data["has_submitted"] is False
        assert data["proctoring_enabled"] is True
        assert data["allow_late_submissions"] is False
        print("✓ Quiz served without answers")

    def test_access_errors(self, client, admin, setup, make_assignment, make_user):
        cls, quiz, candidate = setup
        restricted = make_assignment(admin, quiz, cls, subgroup="BAI")

        assert client.get("/api/candidate/assignment/missing", headers=candidate["headers"]).status_code == 404

        response = client.get(f"/api/candidate/assignment/{restricted['id']}", headers=candidate["headers"])
        assert response.status_code == 403
        assert "subgroup mismatch" in response.json()["detail"]

        outsider = make_user(role="candidate", registration_number="22BAI10100")
        assert client.get(f"/api/candidate/assignment/{restricted['id']}", headers=outsider["headers"]).status_code == 403


class TestSubmitQuiz:
    def test_submit_and_store(self, client, admin, setup, make_assignment, mock_db):
        cls, quiz, candidate = setup
        assignment = make_assignment(admin, quiz, cls)

        response = client.post(f"/api/candidate/submit-quiz/{assignment['id']}", json={
            "answers": {"q1": "4", "q2": "True"},
            "tab_switch_count": 3,
            "auto_submitted": True,
            "proctoring_data": {"violations": ["tab_switch"]}
        }, headers=candidate["headers"])
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["message"] == "Quiz submitted successfully!"
        assert data["score"] is None
        assert data["is_late_submission"] is False

        stored = run(mock_db.assignments.find_one({"id": assignment["id"]}))["submissions"][0]
        assert stored["candidate_id"] == candidate["user_id"]
        assert stored["score"] == 25.0
        assert stored["tab_switch_count"] == 3
        assert stored["auto_submitted"] is True
        assert stored["proctoring_data"] == {"violations": ["tab_switch"]}
        assert len(stored["answers"]) == 4

    def test_score_shown_when_class_allows(self, client, admin, setup, make_assignment):
        cls, quiz, candidate = setup
        client.put(f"/api/classes/{cls['id']}", json={"show_results": True}, headers=admin["headers"])
        assignment = make_assignment(admin, quiz, cls)

        data = client.post(f"/api/candidate/submit-quiz/{assignment['id']}", json={"answers": ANSWERS}, headers=candidate["headers"]).json()
        assert data["score"] == 100.0
        assert data["correct_count"] == 4

    def test_single_submission(self, client, admin, setup, make_assignment):
        cls, quiz, candidate = setup
        assignment = make_assignment(admin, quiz, cls)
        url = f"/api/candidate/submit-quiz/{assignment['id']}"

        assert client.post(url, json={"answers": ANSWERS}, headers=candidate["headers"]).status_code == 200
        second = client.post(url, json={"answers": ANSWERS}, headers=candidate["headers"])
        assert second.status_code == 400
        print("✓ Second submission rejected")

    def test_stale_read_cannot_store_a_second_submission(self, client, admin, setup, make_assignment, mock_db, monkeypatch):
        """The write itself refuses a second submission when the earlier read missed the first"""
        cls, quiz, candidate = setup
        assignment = make_assignment(admin, quiz, cls)
        url = f"/api/candidate/submit-quiz/{assignment['id']}"
        assert client.post(url, json={"answers": ANSWERS}, headers=candidate["headers"]).status_code == 200

        # Pretend the request read the assignment before the first submission landed
        monkeypatch.setattr(routes.candidate_routes, "find_submission", lambda assignment, candidate_id: None)
        response = client.post(url, json={"answers": {"q1": "3"}, "auto_submitted": True}, headers=candidate["headers"])
        assert response.status_code == 400

        stored = run(mock_db.assignments.find_one({"id": assignment["id"]}))["submissions"]
        assert len(stored) == 1
        assert stored[0]["score"] == 100.0
        print("✓ Concurrent submit stored once")

    def test_late_submission_policy(self, client, admin, setup, make_assignment):
        cls, quiz, candidate = setup
        overdue = make_assignment(admin, quiz, cls, due_date=iso_in(hours=-1))
        url = f"/api/candidate/submit-quiz/{overdue['id']}"

        assert client.post(url, json={"answers": ANSWERS}, headers=candidate["headers"]).status_code == 403

        client.put(f"/api/classes/{cls['id']}", json={"allow_late_submissions": True}, headers=admin["headers"])
        response = client.post(url, json={"answers": ANSWERS}, headers=candidate["headers"])
        assert response.status_code == 200
        assert response.json()["message"] == "Late submission recorded successfully!"
        assert response.json()["is_late_submission"] is True

    def test_rejections(self, client, admin, setup, make_assignment, make_user):
        cls, quiz, candidate = setup
        restricted = make_assignment(admin, quiz, cls, subgroup="MIM")
        open_assignment = make_assignment(admin, quiz, cls)

        assert client.post("/api/candidate/submit-quiz/missing", json={}, headers=candidate["headers"]).status_code == 404
        assert client.post(f"/api/candidate/submit-quiz/{restricted['id']}", json={}, headers=candidate["headers"]).status_code == 403
        outsider = make_user(role="candidate")
        assert client.post(f"/api/candidate/submit-quiz/{open_assignment['id']}", json={}, headers=outsider["headers"]).status_code == 403
        assert client.post(f"/api/candidate/submit-quiz/{open_assignment['id']}", json={}, headers=admin["headers"]).status_code == 403


def xlsx_upload(rows):
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    async def fake_send(email, name, class_info, invite_code, admin_name):
        if email.startswith("bounce"):
            raise EmailServiceError("Failed to send email: mailbox unavailable")
        sent.append({"email": email, "name": name, "invite_code": invite_code, "admin_name": admin_name})

    monkeypatch.setattr(routes.candidate_routes, "send_class_invitation", fake_send)
    return sent


class TestInvitations:
    def test_parse_file_preview(self, client, admin):
        content = "name,email\nAnn Lee,ann@example.com\nNo Email,\nBad,bad-email\n".encode()
        response = client.post(
            "/api/candidate/parse-file",
            files={"file": ("roster.csv", content, "text/csv")},
            headers=admin["headers"]
        )
        assert response.status_code == 200
        data = response.json()
        assert data["candidates"] == [{"name": "Ann Lee", "email": "ann@example.com"}]
        assert len(data["errors"]) == 2
        assert data["message"] == "Parsed 1 valid candidates, 2 rows had errors"

    def test_parse_file_errors(self, client, admin, make_user):
        bad_type = client.post("/api/candidate/parse-file", files={"file": ("roster.txt", b"hi", "text/plain")}, headers=admin["headers"])
        assert bad_type.status_code == 400
        empty = client.post("/api/candidate/parse-file", files={"file": ("roster.csv", b"name,email\n", "text/csv")}, headers=admin["headers"])
        assert empty.status_code == 400
        candidate = make_user(role="candidate")
        forbidden = client.post("/api/candidate/parse-file", files={"file": ("roster.csv", b"name,email\n", "text/csv")}, headers=candidate["headers"])
        assert forbidden.status_code == 403

    def test_send_invites(self, client, admin, setup, sent_emails):
        cls, _, candidate = setup
        response = client.post("/api/candidate/send-invites", json={
            "class_id": cls["id"],
            "candidates": [
                {"name": "New Person", "email": "New@Example.com"},
                {"name": "Ann Lee", "email": candidate["email"]},
                {"name": "Bounce", "email": "bounce@example.com"},
                {"name": "", "email": "blank@example.com"},
            ]
        }, headers=admin["headers"])
        assert response.status_code == 200, response.text
        summary = response.json()["results"]
        assert summary == {"total": 4, "emails_sent": 1, "already_invited": 1, "errors": 2}
        assert sent_emails[0]["email"] == "new@example.com"
        assert sent_emails[0]["invite_code"] == cls["invite_code"]
        assert sent_emails[0]["admin_name"] == "Dr. Ada Admin"
        print("✓ Invites sent, enrolled and failed rows reported")

    def test_send_invites_validation(self, client, admin, make_class, make_user, sent_emails):
        assert client.post("/api/candidate/send-invites", json={"class_id": "x"}, headers=admin["headers"]).status_code == 400

        other = make_user(role="admin")
        cls = make_class(other)
        response = client.post("/api/candidate/send-invites", json={
            "class_id": cls["id"], "candidates": [{"name": "A", "email": "a@example.com"}]
        }, headers=admin["headers"])
        assert response.status_code == 404

    def test_bulk_invite_from_xlsx(self, client, admin, setup, sent_emails):
        cls, _, _ = setup
        content = xlsx_upload([
            ["Name", "Email"],
            ["Bo Chan", "bo@example.com"],
            ["Cy Dee", "not-an-email"],
        ])
        response = client.post(
            "/api/candidate/bulk-invite",
            data={"class_id": cls["id"]},
            files={"file": ("roster.xlsx", content, "application/octet-stream")},
            headers=admin["headers"]
        )
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["results"] == {"total": 2, "emails_sent": 1, "already_invited": 0, "errors": 1}
        assert data["details"]["errors"][0]["row"] == 3
        assert [e["email"] for e in sent_emails] == ["bo@example.com"]

    def test_download_template(self, client, admin):
        response = client.get("/api/candidate/download-template", headers=admin["headers"])
        assert response.status_code == 200
        assert "candidate-upload-template.xlsx" in response.headers["content-disposition"]
        workbook = load_workbook(io.BytesIO(response.content))
        assert [c.value for c in workbook.active[1]] == ["name", "email"]
