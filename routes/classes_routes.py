"""Routes for Classes and class membership"""
from fastapi import APIRouter, HTTPException, Depends
from typing import Optional
import logging
from datetime import datetime, timezone

from models.classes_models import (
    ClassCreate, ClassUpdate, ClassModel,
    JoinClassRequest, RemoveStudentRequest,
    generate_invite_code
)
from models.user_models import User
from utils.database import db
from utils.dependencies import get_current_user, require_admin, require_candidate
from utils.population import populate_class

router = APIRouter(tags=["classes"])
logger = logging.getLogger(__name__)


async def get_owned_class(class_id: str, user: User, action: str = "modify") -> dict:
    """Load a class, 404 if missing and 403 if the caller did not create it"""
    cls = await db.classes.find_one({"id": class_id}, {"_id": 0})
    if not cls:
        raise HTTPException(status_code=404, detail="Class not found")
    if cls["admin_id"] != user.user_id:
        logger.warning(f"Unauthorized attempt to {action} class {class_id} by user {user.user_id}")
        raise HTTPException(status_code=403, detail=f"Not authorized to {action} this class")
    return cls


# ==================== CLASSES ENDPOINTS ====================

@router.post("/classes", status_code=201)
async def create_class(class_data: ClassCreate, user = Depends(require_admin)):
    """Create a new class with a fresh invite code"""
    if not class_data.title or not class_data.course_code:
        raise HTTPException(status_code=400, detail="Title and course code are required")

    new_class = ClassModel(
        admin_id=user.user_id,
        title=class_data.title,
        course_code=class_data.course_code.strip().upper(),
        description=class_data.description or "",
        invite_code=generate_invite_code(class_data.course_code)
    )

    await db.classes.insert_one(new_class.model_dump())
    logger.info(f"Class {new_class.id} ({new_class.course_code}) created by {user.user_id}")

    return {
        "success": True,
        "message": "Class created successfully",
        "class": new_class.model_dump()
    }


@router.get("/classes")
async def get_classes(user = Depends(require_admin), limit: Optional[int] = None):
    """Get the admin's active classes, newest first"""
    cursor = db.classes.find(
        {"admin_id": user.user_id, "is_active": True},
        {"_id": 0}
    ).sort("created_at", -1)
    if limit:
        cursor = cursor.limit(limit)
    classes = await cursor.to_list(limit or 1000)

    for cls in classes:
        await populate_class(db, cls)

    return {"success": True, "classes": classes}


@router.post("/classes/join")
async def join_class(join_req: JoinClassRequest, user = Depends(get_current_user)):
    """Candidate joins a class using its invite code"""
    if not join_req.invite_code:
        raise HTTPException(status_code=400, detail="Invite code is required")

    if user.role != "candidate":
        raise HTTPException(status_code=403, detail="Only candidates can join a class")

    invite_code = join_req.invite_code.strip()
    cls = await db.classes.find_one({"invite_code": invite_code, "is_active": True}, {"_id": 0})
    if not cls:
        raise HTTPException(status_code=404, detail="Class not found. Please check the invite code.")

    if user.user_id in (cls.get("students") or []):
        raise HTTPException(status_code=400, detail="You are already enrolled in this class")

    await db.classes.update_one(
        {"id": cls["id"]},
        {
            "$addToSet": {"students": user.user_id},
            "$set": {"updated_at": datetime.now(timezone.utc).isoformat()}
        }
    )
    logger.info(f"Candidate {user.user_id} joined class {cls['id']}")

    cls = await db.classes.find_one({"id": cls["id"]}, {"_id": 0})
    await populate_class(db, cls, include_students=False)

    return {
        "success": True,
        "message": "Successfully joined class!",
        "class": cls
    }


@router.get("/classes/{class_id}")
async def get_class_detail(class_id: str, user = Depends(get_current_user)):
    """Get a class with its full roster. Only the creator can see it"""
    cls = await get_owned_class(class_id, user, action="view")
    await populate_class(db, cls)

    return {"success": True, "class": cls}


@router.put("/classes/{class_id}")
async def update_class(class_id: str, class_data: ClassUpdate, user = Depends(get_current_user)):
    """Update the provided class fields and policies"""
    await get_owned_class(class_id, user, action="update")

    update_data = {k: v for k, v in class_data.model_dump().items() if v is not None}
    for field in ("title", "course_code"):
        if field in update_data and not update_data[field].strip():
            raise HTTPException(status_code=400, detail="Title and course code cannot be empty")
    if "course_code" in update_data:
        update_data["course_code"] = update_data["course_code"].strip().upper()
    update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

    await db.classes.update_one({"id": class_id}, {"$set": update_data})
    updated = await db.classes.find_one({"id": class_id}, {"_id": 0})

    return {
        "success": True,
        "message": "Class updated successfully",
        "class": updated
    }


@router.delete("/classes/{class_id}")
async def delete_class(class_id: str, user = Depends(get_current_user)):
    """Delete a class permanently together with its assignments"""
    await get_owned_class(class_id, user, action="delete")

    result = await db.assignments.delete_many({"class_id": class_id})
    await db.classes.delete_one({"id": class_id})
    logger.info(f"Class {class_id} deleted with {result.deleted_count} assignment(s)")

    return {"success": True, "message": "Class deleted successfully"}


@router.post("/classes/{class_id}/remove-student")
async def remove_student(class_id: str, data: RemoveStudentRequest, user = Depends(get_current_user)):
    """Remove a student and delete their submissions in this class's assignments"""
    if not data.student_id:
        raise HTTPException(status_code=400, detail="Student ID is required")

    cls = await get_owned_class(class_id, user, action="modify")

    if data.student_id not in (cls.get("students") or []):
        raise HTTPException(status_code=400, detail="Student is not enrolled in this class")

    await db.classes.update_one(
        {"id": class_id},
        {
            "$pull": {"students": data.student_id},
            "$set": {"updated_at": datetime.now(timezone.utc).isoformat()}
        }
    )

    assignments = await db.assignments.find(
        {"class_id": class_id},
        {"_id": 0, "id": 1, "submissions": 1}
    ).to_list(1000)

    total_removed = sum(
        1 for assignment in assignments
        for s in assignment.get("submissions") or []
        if s.get("candidate_id") == data.student_id
    )
    await db.assignments.update_many(
        {"class_id": class_id},
        {"$pull": {"submissions": {"candidate_id": data.student_id}}}
    )

    logger.info(f"Removed student {data.student_id} from class {class_id}, {total_removed} submission(s) deleted")

    cls = await db.classes.find_one({"id": class_id}, {"_id": 0})
    return {
        "success": True,
        "message": f"Student removed from class successfully. {total_removed} submission(s) deleted.",
        "submissions_removed": total_removed,
        "class": cls
    }


@router.patch("/classes/{class_id}/regenerate-invite")
async def regenerate_invite(class_id: str, user = Depends(get_current_user)):
    """Issue a new invite code; the old one stops working"""
    cls = await get_owned_class(class_id, user, action="modify")

    invite_code = generate_invite_code(cls["course_code"])
    await db.classes.update_one(
        {"id": class_id},
        {"$set": {"invite_code": invite_code, "updated_at": datetime.now(timezone.utc).isoformat()}}
    )

    return {
        "success": True,
        "message": "Invite code regenerated successfully",
        "invite_code": invite_code
    }


# ==================== CANDIDATE CLASS LIST ====================

@router.get("/candidate/my-classes")
async def get_candidate_classes(user = Depends(require_candidate)):
    """Active classes the candidate is enrolled in"""
    classes = await db.classes.find(
        {"students": user.user_id, "is_active": True},
        {"_id": 0, "id": 1, "title": 1, "course_code": 1, "admin_id": 1, "students": 1, "created_at": 1}
    ).sort("created_at", -1).to_list(500)

    for cls in classes:
        await populate_class(db, cls, include_students=False)
        # Candidates only see how many classmates they have
        cls.pop("students", None)

    return {"success": True, "classes": classes}
