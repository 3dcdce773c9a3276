"""Models for Classes and class membership"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime, timezone
import random
import string
import uuid


def generate_invite_code(course_code: str) -> str:
    """Invite codes look like CS101-X7K2QD"""
    suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"{course_code.strip().upper()}-{suffix}"


# ==================== CLASSES MODELS ====================

class ClassCreate(BaseModel):
    title: Optional[str] = None
    course_code: Optional[str] = None
    description: Optional[str] = None


class ClassUpdate(BaseModel):
    title: Optional[str] = None
    course_code: Optional[str] = None
    description: Optional[str] = None
    semester: Optional[str] = None
    academic_year: Optional[str] = None
    allow_late_submissions: Optional[bool] = None
    auto_grading: Optional[bool] = None
    show_results: Optional[bool] = None
    show_roster_to_candidates: Optional[bool] = None
    show_leaderboard_to_candidates: Optional[bool] = None


class ClassModel(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    admin_id: str
    title: str
    course_code: str
    description: str = ""
    students: List[str] = []
    invite_code: str
    is_active: bool = True
    semester: Optional[str] = None
    academic_year: Optional[str] = None
    # Class policies
    allow_late_submissions: bool = False
    auto_grading: bool = True
    show_results: bool = False
    show_roster_to_candidates: bool = False
    show_leaderboard_to_candidates: bool = False
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


# ==================== MEMBERSHIP MODELS ====================

class JoinClassRequest(BaseModel):
    invite_code: Optional[str] = None


class RemoveStudentRequest(BaseModel):
    student_id: Optional[str] = None
