"""Routes for admin-authored quizzes"""
from fastapi import APIRouter, HTTPException, Depends
from datetime import datetime, timezone

from models.quiz_models import QuizCreate, QuizUpdate, QuizModel
from utils.database import db
from utils.dependencies import require_admin

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


@router.get("")
async def get_quizzes(user = Depends(require_admin)):
    quizzes = await db.quizzes.find(
        {"admin_id": user.user_id},
        {"_id": 0}
    ).sort("created_at", -1).to_list(500)

    for quiz in quizzes:
        quiz["question_count"] = len(quiz.get("questions") or [])

    return {"success": True, "quizzes": quizzes}


@router.post("", status_code=201)
async def create_quiz(quiz_data: QuizCreate, user = Depends(require_admin)):
    new_quiz = QuizModel(
        admin_id=user.user_id,
        title=quiz_data.title,
        description=quiz_data.description or "",
        questions=quiz_data.questions
    )

    await db.quizzes.insert_one(new_quiz.model_dump())

    return {
        "success": True,
        "message": f"Quiz '{quiz_data.title}' created successfully",
        "quiz": new_quiz.model_dump()
    }


@router.get("/{quiz_id}")
async def get_quiz(quiz_id: str, user = Depends(require_admin)):
    quiz = await db.quizzes.find_one({"id": quiz_id, "admin_id": user.user_id}, {"_id": 0})
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return {"success": True, "quiz": quiz}


@router.put("/{quiz_id}")
async def update_quiz(quiz_id: str, quiz_data: QuizUpdate, user = Depends(require_admin)):
    quiz = await db.quizzes.find_one({"id": quiz_id, "admin_id": user.user_id})
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")

    update_data = {k: v for k, v in quiz_data.model_dump().items() if v is not None}
    update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

    await db.quizzes.update_one({"id": quiz_id, "admin_id": user.user_id}, {"$set": update_data})
    updated = await db.quizzes.find_one({"id": quiz_id}, {"_id": 0})

    return {"success": True, "message": "Quiz updated successfully", "quiz": updated}


@router.delete("/{quiz_id}")
async def delete_quiz(quiz_id: str, user = Depends(require_admin)):
    """Delete a quiz that is not assigned to any class"""
    quiz = await db.quizzes.find_one({"id": quiz_id, "admin_id": user.user_id})
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")

    in_use = await db.assignments.count_documents({"quiz_id": quiz_id})
    if in_use:
        raise HTTPException(status_code=400, detail=f"Quiz is used by {in_use} assignment(s). Delete them first")

    await db.quizzes.delete_one({"id": quiz_id, "admin_id": user.user_id})

    return {"success": True, "message": "Quiz deleted successfully"}
