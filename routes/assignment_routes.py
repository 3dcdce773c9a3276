"""Routes for assigning quizzes to classes and reviewing graded results"""
from fastapi import APIRouter, HTTPException, Depends, Response
import csv
import io
import logging
import math
from datetime import datetime, timezone

from models.assignment_models import AssignmentCreate, AssignmentUpdate, AssignmentModel, WEIGHTAGE_TYPES
from models.user_models import User
from services.branch_eligibility import filter_eligible_students
from services.grading_service import build_submission_breakdown, build_class_results
from utils.database import db
from utils.datetime_utils import parse_datetime, to_iso
from utils.dependencies import get_current_user, require_admin
from utils.population import fetch_users, fetch_quizzes, populate_assignments

router = APIRouter(prefix="/assignments", tags=["assignments"])


async def get_owned_assignment(assignment_id: str, user: User, action: str) -> dict:
    assignment = await db.assignments.find_one({"id": assignment_id}, {"_id": 0})
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    if assignment["admin_id"] != user.user_id:
        logging.warning(f"User {user.user_id} tried to {action} assignment {assignment_id} they do not own")
        raise HTTPException(status_code=403, detail=f"Not authorized to {action} this assignment")
    return assignment


def validate_weightage(weightage: float, weightage_type: str, allow_zero: bool):
    if weightage_type not in WEIGHTAGE_TYPES:
        raise HTTPException(status_code=400, detail='Weightage type must be either "percentage" or "marks"')
    if not math.isfinite(weightage) or weightage < 0 or (weightage == 0 and not allow_zero):
        raise HTTPException(status_code=400, detail="Weightage must be a positive number")
    if weightage_type == "percentage" and weightage > 100:
        raise HTTPException(status_code=400, detail="Percentage weightage cannot exceed 100%")


# ==================== ASSIGNMENT CRUD ====================

@router.post("", status_code=201)
async def create_assignment(data: AssignmentCreate, user = Depends(require_admin)):
    """Assign one of the admin's quizzes to one of their classes"""
    if not data.quiz_id or not data.class_id or not data.due_date or not data.time_limit:
        raise HTTPException(
            status_code=400,
            detail="All fields are required (quiz_id, class_id, due_date, time_limit)"
        )
    if data.time_limit <= 0:
        raise HTTPException(status_code=400, detail="Time limit must be a positive number")

    weightage = data.weightage if data.weightage is not None else 0
    weightage_type = data.weightage_type or "percentage"
    validate_weightage(weightage, weightage_type, allow_zero=True)

    # Security checks
    quiz = await db.quizzes.find_one({"id": data.quiz_id, "admin_id": user.user_id}, {"_id": 0})
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found or you are not the owner")

    cls = await db.classes.find_one({"id": data.class_id, "admin_id": user.user_id}, {"_id": 0})
    if not cls:
        raise HTTPException(status_code=404, detail="Class not found or you are not the owner")

    subgroup = (data.subgroup or "").strip()
    subclasses = [s.strip() for s in data.subclasses or [] if s and s.strip()]

    # How many enrolled students the subgroup/subclasses restriction lets through
    students = list((await fetch_users(db, cls.get("students") or [])).values())
    eligible = filter_eligible_students(students, subgroup, subclasses)

    new_assignment = AssignmentModel(
        quiz_id=data.quiz_id,
        class_id=data.class_id,
        admin_id=user.user_id,
        due_date=to_iso(data.due_date),
        time_limit=data.time_limit,
        weightage=weightage,
        weightage_type=weightage_type,
        subgroup=subgroup,
        subclasses=subclasses,
        proctoring_enabled=bool(data.proctoring_enabled)
    )

    await db.assignments.insert_one(new_assignment.model_dump())
    logging.info(
        f"Assignment {new_assignment.id} created for class {data.class_id}: "
        f"{weightage} {weightage_type}, subgroup '{subgroup or 'ALL'}', {len(eligible)} eligible student(s)"
    )

    assignment = new_assignment.model_dump()
    await populate_assignments(db, [assignment])

    return {
        "success": True,
        "message": "Assignment created successfully",
        "assignment": assignment,
        "eligible_student_count": len(eligible)
    }


@router.get("")
async def get_assignments(user = Depends(require_admin)):
    """All assignments created by the admin, newest first"""
    assignments = await db.assignments.find(
        {"admin_id": user.user_id},
        {"_id": 0}
    ).sort("created_at", -1).to_list(1000)

    await populate_assignments(db, assignments)

    return {"success": True, "assignments": assignments}


@router.get("/class/{class_id}")
async def get_assignments_by_class(class_id: str, user = Depends(get_current_user)):
    """Assignments of a class, earliest due date first"""
    cls = await db.classes.find_one({"id": class_id, "admin_id": user.user_id}, {"_id": 0, "id": 1})
    if not cls:
        raise HTTPException(status_code=404, detail="Class not found or you are not the owner")

    assignments = await db.assignments.find(
        {"class_id": class_id},
        {"_id": 0}
    ).sort("due_date", 1).to_list(1000)

    await populate_assignments(db, assignments)

    return {"success": True, "assignments": assignments}


@router.put("/{assignment_id}")
async def update_assignment(assignment_id: str, data: AssignmentUpdate, user = Depends(get_current_user)):
    """Edit due date, time limit, weightage, subgroup or proctoring; optionally reset submissions"""
    assignment = await get_owned_assignment(assignment_id, user, action="update")
    update_data = {}

    if data.due_date:
        try:
            update_data["due_date"] = to_iso(parse_datetime(data.due_date))
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid due date format")

    if data.time_limit is not None:
        try:
            time_limit = int(float(data.time_limit))
        except (TypeError, ValueError, OverflowError):
            time_limit = 0
        if time_limit <= 0:
            raise HTTPException(status_code=400, detail="Time limit must be a positive number")
        update_data["time_limit"] = time_limit

    weightage_type = assignment.get("weightage_type") or "percentage"
    if data.weightage_type is not None:
        if data.weightage_type not in WEIGHTAGE_TYPES:
            raise HTTPException(status_code=400, detail='Weightage type must be either "percentage" or "marks"')
        weightage_type = data.weightage_type
        update_data["weightage_type"] = weightage_type

    if data.weightage is not None:
        try:
            weightage = float(data.weightage)
        except (TypeError, ValueError):
            raise HTTPException(status_code=400, detail="Weightage must be a positive number")
        validate_weightage(weightage, weightage_type, allow_zero=False)
        update_data["weightage"] = weightage
        logging.info(f"Assignment {assignment_id} weightage set to {weightage} {weightage_type}")

    if data.subgroup is not None:
        update_data["subgroup"] = data.subgroup.strip()

    if data.proctoring_enabled is not None:
        update_data["proctoring_enabled"] = data.proctoring_enabled

    if data.allow_retake is True:
        logging.info(f"Clearing {len(assignment.get('submissions') or [])} submission(s) of {assignment_id} to allow retakes")
        update_data["submissions"] = []

    update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
    await db.assignments.update_one({"id": assignment_id}, {"$set": update_data})

    updated = await db.assignments.find_one({"id": assignment_id}, {"_id": 0})
    await populate_assignments(db, [updated])

    return {
        "success": True,
        "message": "Assignment updated successfully",
        "assignment": updated
    }


@router.delete("/{assignment_id}")
async def delete_assignment(assignment_id: str, user = Depends(get_current_user)):
    await get_owned_assignment(assignment_id, user, action="delete")
    await db.assignments.delete_one({"id": assignment_id})
    return {"success": True, "message": "Assignment deleted successfully"}


# ==================== SUBMISSION REVIEW ====================

@router.get("/{assignment_id}/submissions")
async def get_assignment_submissions(assignment_id: str, user = Depends(get_current_user)):
    """All submissions of an assignment with candidate details"""
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Not authorized. Only admins can view submissions.")

    assignment = await db.assignments.find_one({"id": assignment_id}, {"_id": 0})
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    if assignment["admin_id"] != user.user_id:
        raise HTTPException(status_code=403, detail="You do not own this assignment")

    submissions = assignment.get("submissions") or []
    candidates = await fetch_users(db, [s["candidate_id"] for s in submissions])
    for submission in submissions:
        submission["candidate"] = candidates.get(submission["candidate_id"])

    quiz = await db.quizzes.find_one({"id": assignment["quiz_id"]}, {"_id": 0, "title": 1})
    cls = await db.classes.find_one({"id": assignment["class_id"]}, {"_id": 0, "title": 1, "course_code": 1})

    return {
        "success": True,
        "assignment_id": assignment["id"],
        "quiz_title": (quiz or {}).get("title"),
        "class_title": (cls or {}).get("title"),
        "course_code": (cls or {}).get("course_code"),
        "due_date": assignment["due_date"],
        "time_limit": assignment["time_limit"],
        "submissions": submissions,
        "total_submissions": len(submissions)
    }


@router.get("/{assignment_id}/submissions/{submission_id}")
async def get_submission_details(assignment_id: str, submission_id: str, user = Depends(get_current_user)):
    """Question-by-question breakdown of one submission"""
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Not authorized. Only admins can view submission details.")

    assignment = await db.assignments.find_one({"id": assignment_id}, {"_id": 0})
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    if assignment["admin_id"] != user.user_id:
        raise HTTPException(status_code=403, detail="You do not own this assignment")

    submission = next((s for s in assignment.get("submissions") or [] if s.get("id") == submission_id), None)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")

    quiz = await db.quizzes.find_one({"id": assignment["quiz_id"]}, {"_id": 0}) or {"questions": []}
    cls = await db.classes.find_one({"id": assignment["class_id"]}, {"_id": 0, "id": 1, "title": 1, "course_code": 1})
    candidate = (await fetch_users(db, [submission["candidate_id"]])).get(submission["candidate_id"])

    report = build_submission_breakdown(quiz.get("questions") or [], submission)

    return {
        "success": True,
        "submission_id": submission["id"],
        "candidate": candidate,
        "quiz": {"id": quiz.get("id"), "title": quiz.get("title")},
        "class": cls,
        "score": report["score"],
        "submitted_at": submission.get("submitted_at"),
        "is_late_submission": submission.get("is_late_submission", False),
        "telemetry": {
            "tab_switch_count": submission.get("tab_switch_count", 0),
            "esc_count": submission.get("esc_count", 0),
            "was_fullscreen": submission.get("was_fullscreen", False),
            "auto_submitted": submission.get("auto_submitted", False),
            "proctoring_data": submission.get("proctoring_data")
        },
        "statistics": report["statistics"],
        "questions": report["questions"]
    }


# ==================== CLASS RESULTS ====================

async def load_class_results(class_id: str, user: User) -> dict:
    cls = await db.classes.find_one({"id": class_id, "admin_id": user.user_id}, {"_id": 0})
    if not cls:
        raise HTTPException(status_code=404, detail="Class not found or you are not authorized")

    assignments = await db.assignments.find({"class_id": class_id}, {"_id": 0}).to_list(1000)
    quizzes = await fetch_quizzes(db, [a["quiz_id"] for a in assignments], ["title", "questions"])
    candidate_ids = [s["candidate_id"] for a in assignments for s in a.get("submissions") or []]
    candidates = await fetch_users(db, candidate_ids)

    rows = build_class_results(cls, assignments, quizzes, candidates)

    return {
        "class": cls,
        "results": rows,
        "assignments": [{
            "id": a["id"],
            "quiz_title": (quizzes.get(a["quiz_id"]) or {}).get("title"),
            "weightage": a.get("weightage") or 0,
            "weightage_type": a.get("weightage_type") or "percentage",
            "subgroup": a.get("subgroup") or ""
        } for a in assignments]
    }


@router.get("/class/{class_id}/results")
async def get_class_results(class_id: str, user = Depends(get_current_user)):
    """Every enrolled candidate's graded submissions with marks per weightage"""
    data = await load_class_results(class_id, user)
    logging.info(f"Class {class_id} results: {len(data['results'])} submission(s) across {len(data['assignments'])} assignment(s)")

    return {
        "success": True,
        "results": data["results"],
        "assignments": data["assignments"]
    }


@router.get("/class/{class_id}/results/export-csv")
async def export_class_results_csv(class_id: str, user = Depends(get_current_user)):
    """Download class results as CSV"""
    data = await load_class_results(class_id, user)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([
        'Candidate Name', 'Email', 'Registration Number', 'Quiz', 'Correct', 'Total Questions',
        'Percentage', 'Marks Obtained', 'Weightage', 'Weightage Type', 'Late', 'Submitted At'
    ])

    for row in data["results"]:
        candidate = row["candidate"] or {}
        writer.writerow([
            candidate.get("name", ""),
            candidate.get("email", ""),
            candidate.get("registration_number") or "",
            row["quiz_title"],
            row["score"],
            row["total_questions"],
            f"{row['percentage']:.2f}",
            f"{row['marks_obtained']:.2f}",
            row["weightage"],
            row["weightage_type"],
            "Yes" if row["is_late_submission"] else "No",
            row["submitted_at"] or ""
        ])

    csv_content = output.getvalue()
    output.close()

    filename = f"{data['class'].get('course_code', 'class')}_results.csv".replace(' ', '_')
    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
