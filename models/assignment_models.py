"""Models for quiz assignments, embedded submissions and candidate submissions"""
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional, Dict, Any, Union
from datetime import datetime, timezone
import uuid

WEIGHTAGE_TYPES = ("percentage", "marks")


# ==================== ASSIGNMENT MODELS ====================

class AssignmentCreate(BaseModel):
    quiz_id: Optional[str] = None
    class_id: Optional[str] = None
    due_date: Optional[datetime] = None
    time_limit: Optional[int] = None  # minutes
    weightage: Optional[float] = None
    weightage_type: Optional[str] = None
    subgroup: Optional[str] = None  # branch or comma list of branches, e.g. "BCE,BAI"
    subclasses: Optional[List[str]] = None
    proctoring_enabled: Optional[bool] = None


class AssignmentUpdate(BaseModel):
    # Raw values, validated by the handler so bad input is a 400 rather than a 422
    due_date: Optional[str] = None
    time_limit: Optional[Union[int, float, str]] = None
    weightage: Optional[Union[int, float, str]] = None
    weightage_type: Optional[str] = None
    subgroup: Optional[str] = None
    proctoring_enabled: Optional[bool] = None
    allow_retake: Optional[bool] = None


class SubmissionAnswer(BaseModel):
    question_id: str
    selected_answer: str
    is_correct: bool = False


class Submission(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    candidate_id: str
    score: float  # percentage 0-100
    submitted_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    is_late_submission: bool = False
    # Anti-cheat telemetry reported by the quiz client
    tab_switch_count: int = 0
    esc_count: int = 0
    was_fullscreen: bool = False
    auto_submitted: bool = False
    proctoring_data: Optional[Dict[str, Any]] = None
    answers: List[SubmissionAnswer] = []


class AssignmentModel(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    quiz_id: str
    class_id: str
    admin_id: str
    subgroup: str = ""
    subclasses: List[str] = []
    due_date: str
    time_limit: int
    weightage: float = 0
    weightage_type: str = "percentage"
    proctoring_enabled: bool = False
    submissions: List[Submission] = []
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


# ==================== CANDIDATE SUBMISSION ====================

class QuizSubmission(BaseModel):
    answers: Dict[str, str] = {}  # question id -> selected answer
    tab_switch_count: int = 0
    esc_count: int = 0
    was_fullscreen: bool = False
    auto_submitted: bool = False  # timer ran out on the client
    proctoring_data: Optional[Dict[str, Any]] = None
