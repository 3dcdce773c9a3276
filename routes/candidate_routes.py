"""Candidate quiz flow and roster invitations"""
from fastapi import APIRouter, HTTPException, Depends, Response, UploadFile, File, Form
from typing import List, Dict, Any
import logging
import random

from models.assignment_models import QuizSubmission, Submission
from models.candidate_models import SendInvitesRequest
from models.user_models import User
from services.branch_eligibility import is_candidate_eligible
from services.email_service import send_class_invitation, EmailServiceError
from services.grading_service import grade_answers, check_late_policy, is_past_due
from services.roster_import import (
    read_roster_rows, validate_roster_rows, build_template_workbook,
    RosterFileError, XLSX_MEDIA_TYPE
)
from services.submission_events import publish_submission
from utils.database import db
from utils.dependencies import get_current_user, require_admin

router = APIRouter(prefix="/candidate", tags=["candidate"])

SUBGROUP_MISMATCH = "You are not authorized to access this quiz (subgroup mismatch)"


def find_submission(assignment: dict, candidate_id: str):
    return next(
        (s for s in assignment.get("submissions") or [] if s.get("candidate_id") == candidate_id),
        None
    )


# ==================== CANDIDATE QUIZ FLOW ====================

@router.get("/assignments/{class_id}")
async def get_candidate_assignments(class_id: str, user = Depends(get_current_user)):
    """Assignments of an enrolled class that the candidate's branch may take"""
    if user.role != "candidate":
        raise HTTPException(status_code=403, detail="Only candidates can view assignments")

    cls = await db.classes.find_one({"id": class_id, "students": user.user_id}, {"_id": 0})
    if not cls:
        raise HTTPException(status_code=404, detail="Class not found or you are not enrolled")

    assignments = await db.assignments.find(
        {"class_id": class_id},
        {"_id": 0}
    ).sort("due_date", 1).to_list(1000)

    quiz_ids = list({a["quiz_id"] for a in assignments})
    quizzes = await db.quizzes.find(
        {"id": {"$in": quiz_ids}},
        {"_id": 0, "id": 1, "title": 1, "questions": 1}
    ).to_list(len(quiz_ids) or 1)
    quiz_map = {q["id"]: q for q in quizzes}

    visible = []
    for assignment in assignments:
        if not is_candidate_eligible(assignment, user.registration_number):
            continue

        quiz = quiz_map.get(assignment["quiz_id"]) or {}
        submission = find_submission(assignment, user.user_id)
        show_score = cls.get("show_results", False) and submission is not None

        visible.append({
            "id": assignment["id"],
            "quiz_title": quiz.get("title"),
            "question_count": len(quiz.get("questions") or []),
            "due_date": assignment["due_date"],
            "time_limit": assignment["time_limit"],
            "subgroup": assignment.get("subgroup") or "",
            "is_past_due": is_past_due(assignment["due_date"]),
            "has_submitted": submission is not None,
            "submission_score": submission["score"] if show_score else None,
            "submitted_at": submission.get("submitted_at") if submission else None,
            "is_late_submission": submission.get("is_late_submission", False) if submission else False,
            "allow_late_submissions": cls.get("allow_late_submissions", False)
        })

    logging.info(f"Candidate {user.user_id} sees {len(visible)} of {len(assignments)} assignment(s) in class {class_id}")

    return {"success": True, "assignments": visible}


@router.get("/assignment/{assignment_id}")
async def get_single_assignment(assignment_id: str, user = Depends(get_current_user)):
    """Quiz for the candidate to take: questions shuffled and answers removed"""
    if user.role != "candidate":
        raise HTTPException(status_code=403, detail="Only candidates can take quizzes")

    assignment = await db.assignments.find_one({"id": assignment_id}, {"_id": 0})
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")

    cls = await db.classes.find_one({"id": assignment["class_id"], "students": user.user_id}, {"_id": 0})
    if not cls:
        raise HTTPException(status_code=403, detail="You are not enrolled in the class for this assignment")

    if not is_candidate_eligible(assignment, user.registration_number):
        logging.warning(f"Subgroup mismatch: candidate {user.user_id} ({user.registration_number}) on assignment {assignment_id} [{assignment.get('subgroup')}]")
        raise HTTPException(status_code=403, detail=SUBGROUP_MISMATCH)

    quiz = await db.quizzes.find_one({"id": assignment["quiz_id"]}, {"_id": 0}) or {}

    # Shuffle questions and strip answers
    questions = list(quiz.get("questions") or [])
    random.shuffle(questions)
    questions_for_candidate = [
        {k: v for k, v in q.items() if k != "answer"} for q in questions
    ]

    submission = find_submission(assignment, user.user_id)

    return {
        "success": True,
        "assignment": {
            "assignment_id": assignment["id"],
            "class_id": cls["id"],
            "class_name": cls.get("title"),
            "title": quiz.get("title"),
            "time_limit": assignment["time_limit"],
            "due_date": assignment["due_date"],
            "questions": questions_for_candidate,
            # Lets the client restart its timer when the assignment changes
            "updated_at": assignment.get("updated_at"),
            "has_submitted": submission is not None,
            "submission_score": submission["score"] if submission and cls.get("show_results") else None,
            "is_past_due": is_past_due(assignment["due_date"]),
            "allow_late_submissions": cls.get("allow_late_submissions", False),
            "proctoring_enabled": assignment.get("proctoring_enabled", False)
        }
    }


@router.post("/submit-quiz/{assignment_id}")
async def submit_quiz(assignment_id: str, data: QuizSubmission, user = Depends(get_current_user)):
    """Grade and store a candidate's quiz submission with its anti-cheat telemetry"""
    if user.role != "candidate":
        raise HTTPException(status_code=403, detail="Only candidates can submit quizzes")

    assignment = await db.assignments.find_one({"id": assignment_id}, {"_id": 0})
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")

    cls = await db.classes.find_one({"id": assignment["class_id"], "students": user.user_id}, {"_id": 0})
    if not cls:
        raise HTTPException(status_code=403, detail="You are not enrolled in this class")

    if not is_candidate_eligible(assignment, user.registration_number):
        raise HTTPException(status_code=403, detail=SUBGROUP_MISMATCH)

    if find_submission(assignment, user.user_id):
        raise HTTPException(status_code=400, detail="You have already submitted this quiz")

    policy = check_late_policy(assignment["due_date"], cls.get("allow_late_submissions", False))
    if not policy["allowed"]:
        logging.info(f"Rejected late submission by {user.user_id} for assignment {assignment_id}")
        raise HTTPException(status_code=403, detail="This assignment is past due and late submissions are not allowed")

    # Grade against the full quiz, answers included
    quiz = await db.quizzes.find_one({"id": assignment["quiz_id"]}, {"_id": 0}) or {}
    result = grade_answers(quiz.get("questions") or [], data.answers)

    submission = Submission(
        candidate_id=user.user_id,
        score=result["percentage"],
        is_late_submission=policy["is_late"],
        tab_switch_count=data.tab_switch_count,
        esc_count=data.esc_count,
        was_fullscreen=data.was_fullscreen,
        auto_submitted=data.auto_submitted,
        proctoring_data=data.proctoring_data,
        answers=result["answers"]
    )

    # At most one submission per candidate, even for concurrent submits
    stored = await db.assignments.update_one(
        {"id": assignment_id, "submissions.candidate_id": {"$ne": user.user_id}},
        {"$push": {"submissions": submission.model_dump()}}
    )
    if stored.matched_count == 0:
        raise HTTPException(status_code=400, detail="You have already submitted this quiz")

    logging.info(
        f"Quiz submitted: assignment {assignment_id} candidate {user.user_id} "
        f"{result['correct_count']}/{result['total_questions']} = {result['percentage']:.2f}% "
        f"(late: {policy['is_late']}, tab switches: {data.tab_switch_count}, esc: {data.esc_count}, "
        f"fullscreen: {data.was_fullscreen})"
    )

    publish_submission({
        "assignment_id": assignment_id,
        "class_id": cls["id"],
        "candidate_id": user.user_id,
        "submission_id": submission.id,
        "score": result["percentage"],
        "is_late_submission": policy["is_late"],
        "submitted_at": submission.submitted_at
    })

    show_score = bool(cls.get("show_results", False))
    return {
        "success": True,
        "message": "Late submission recorded successfully!" if policy["is_late"] else "Quiz submitted successfully!",
        "score": result["percentage"] if show_score else None,
        "total_questions": result["total_questions"] if show_score else None,
        "correct_count": result["correct_count"] if show_score else None,
        "show_results": show_score,
        "is_late_submission": policy["is_late"]
    }


# ==================== ROSTER INVITATIONS ====================

async def get_admin_class(class_id: str, user: User) -> dict:
    cls = await db.classes.find_one({"id": class_id, "admin_id": user.user_id}, {"_id": 0})
    if not cls:
        raise HTTPException(status_code=404, detail="Class not found or you do not have permission to modify it")
    return cls


async def read_upload(file: UploadFile) -> List[Dict[str, str]]:
    content = await file.read()
    try:
        rows = read_roster_rows(file.filename, content)
    except RosterFileError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not rows:
        raise HTTPException(status_code=400, detail="The uploaded file is empty or has no valid data")
    return rows


async def send_invitations(cls: dict, candidates: List[Dict[str, Any]], admin: User) -> Dict[str, List[dict]]:
    """Email each candidate the class invite code, skipping those already enrolled"""
    results = {"emails_sent": [], "already_invited": [], "errors": []}
    enrolled = set(cls.get("students") or [])
    class_info = {
        "title": cls.get("title"),
        "course_code": cls.get("course_code"),
        "description": cls.get("description")
    }

    for candidate in candidates:
        name = (candidate.get("name") or "").strip()
        email = (candidate.get("email") or "").strip().lower()

        if not name or not email:
            results["errors"].append({
                "row": candidate.get("row"),
                "reason": "Missing name or email",
                "data": candidate
            })
            continue

        existing_user = await db.users.find_one({"email": email}, {"_id": 0, "user_id": 1, "name": 1, "email": 1})
        if existing_user and existing_user["user_id"] in enrolled:
            results["already_invited"].append({
                "name": existing_user["name"],
                "email": existing_user["email"],
                "reason": "Already enrolled in class"
            })
            continue

        try:
            await send_class_invitation(email, name, class_info, cls["invite_code"], admin.display_name or admin.name)
            results["emails_sent"].append({"name": name, "email": email})
        except EmailServiceError as e:
            results["errors"].append({
                "row": candidate.get("row"),
                "reason": str(e),
                "email": email,
                "name": name
            })

    return results


def summarize(total: int, results: Dict[str, List[dict]]) -> dict:
    return {
        "total": total,
        "emails_sent": len(results["emails_sent"]),
        "already_invited": len(results["already_invited"]),
        "errors": len(results["errors"])
    }


@router.post("/parse-file")
async def parse_file_for_preview(file: UploadFile = File(...), user = Depends(require_admin)):
    """Parse an uploaded roster and return the candidates for preview"""
    rows = await read_upload(file)
    parsed = validate_roster_rows(rows)
    candidates, errors = parsed["candidates"], parsed["errors"]

    return {
        "success": True,
        "candidates": candidates,
        "errors": errors,
        "message": (
            f"Parsed {len(candidates)} valid candidates, {len(errors)} rows had errors"
            if errors else f"Successfully parsed {len(candidates)} candidates"
        )
    }


@router.post("/send-invites")
async def send_bulk_invites(data: SendInvitesRequest, user = Depends(require_admin)):
    """Send invitation emails to a previewed list of candidates"""
    if not data.class_id or not data.candidates:
        raise HTTPException(status_code=400, detail="Class ID and candidates list are required")

    cls = await get_admin_class(data.class_id, user)
    candidates = [c.model_dump() for c in data.candidates]
    results = await send_invitations(cls, candidates, user)

    return {
        "success": True,
        "message": "Invitation emails processed",
        "results": summarize(len(candidates), results),
        "details": results
    }


@router.post("/bulk-invite")
async def bulk_invite_candidates(
    class_id: str = Form(...),
    file: UploadFile = File(...),
    user = Depends(require_admin)
):
    """Upload a roster and invite everyone on it in one step"""
    cls = await get_admin_class(class_id, user)
    rows = await read_upload(file)

    parsed = validate_roster_rows(rows)
    results = await send_invitations(
        cls,
        [{"name": c["name"], "email": c["email"]} for c in parsed["candidates"]],
        user
    )
    # Rows rejected while parsing count as errors too
    results["errors"] = parsed["errors"] + results["errors"]

    return {
        "success": True,
        "message": "Invitation emails sent successfully",
        "results": summarize(len(rows), results),
        "details": results
    }


@router.get("/download-template")
async def download_template(user = Depends(get_current_user)):
    """Sample roster workbook for invitations"""
    return Response(
        content=build_template_workbook(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=candidate-upload-template.xlsx"}
    )
