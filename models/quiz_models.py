"""Models for quizzes authored by admins"""
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional, Literal
from datetime import datetime, timezone
import uuid


class QuizQuestion(BaseModel):
    """A single question. `answer` never leaves the server before submission"""
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str
    type: Literal["multiple_choice", "true_false", "short_answer"] = "multiple_choice"
    options: List[str] = []
    answer: str


class QuizCreate(BaseModel):
    title: str
    description: Optional[str] = None
    questions: List[QuizQuestion] = []


class QuizUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    questions: Optional[List[QuizQuestion]] = None


class QuizModel(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    admin_id: str
    title: str
    description: str = ""
    questions: List[QuizQuestion] = []
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
