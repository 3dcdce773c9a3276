"""Quiz grading, late-submission policy and weightage-to-marks conversion"""
import logging
import math
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional

from utils.datetime_utils import parse_datetime

logger = logging.getLogger(__name__)


def is_answer_correct(question: dict, candidate_answer: str) -> bool:
    """Short answers compare trimmed and case-insensitive, everything else exactly"""
    correct_answer = question.get("answer")
    if correct_answer is None:
        return False
    
    if question.get("type") == "short_answer":
        return candidate_answer.strip().lower() == str(correct_answer).strip().lower()
    return candidate_answer == correct_answer


def grade_answers(questions: List[dict], answers: Dict[str, str]) -> Dict[str, Any]:
    """
    Grade a candidate's answers against the full quiz.
    
    Args:
        questions: Quiz questions including their `answer`
        answers: Map of question id to the candidate's selected answer
    
    Returns:
        dict with correct_count, total_questions, percentage and the graded answers
        in quiz order. Unanswered questions are stored as "" and count as incorrect.
    """
    answers = answers or {}
    correct_count = 0
    graded = []
    
    for question in questions:
        question_id = str(question["id"])
        candidate_answer = answers.get(question_id)
        
        if candidate_answer:
            is_correct = is_answer_correct(question, candidate_answer)
            if is_correct:
                correct_count += 1
            graded.append({
                "question_id": question_id,
                "selected_answer": candidate_answer,
                "is_correct": is_correct
            })
        else:
            graded.append({
                "question_id": question_id,
                "selected_answer": "",
                "is_correct": False
            })
    
    total_questions = len(questions)
    percentage = (correct_count / total_questions) * 100 if total_questions > 0 else 0.0
    
    return {
        "correct_count": correct_count,
        "total_questions": total_questions,
        "percentage": percentage,
        "answers": graded
    }


def marks_obtained(percentage: float, weightage: float, weightage_type: str = "percentage") -> float:
    """
    Convert a quiz percentage into marks for the assignment's weightage.
    
    80% on a 20% weighted quiz is 16 points; 80% on a 6 marks quiz is 4.8 marks.
    Both weightage types reduce to the same conversion.
    """
    percentage = float(percentage or 0)
    weightage = float(weightage or 0)
    if weightage_type == "marks":
        return (percentage / 100) * weightage
    return (percentage * weightage) / 100


def correct_count_from_percentage(percentage: float, total_questions: int) -> int:
    """Recover the correct-answer count from a stored percentage (rounds half up)"""
    return int(math.floor((float(percentage or 0) / 100) * total_questions + 0.5))


def is_past_due(due_date, now: Optional[datetime] = None) -> bool:
    due = parse_datetime(due_date)
    if due is None:
        return False
    now = now or datetime.now(timezone.utc)
    return now > due


def check_late_policy(due_date, allow_late_submissions: bool, now: Optional[datetime] = None) -> Dict[str, bool]:
    """
    Apply the class late-submission policy.
    
    Returns:
        dict: {"is_late": bool, "allowed": bool}
    """
    late = is_past_due(due_date, now)
    return {"is_late": late, "allowed": (not late) or bool(allow_late_submissions)}


def build_submission_breakdown(questions: List[dict], submission: dict) -> Dict[str, Any]:
    """Question-by-question view of a submission with recalculated statistics"""
    answers_by_question = {a["question_id"]: a for a in submission.get("answers") or []}
    
    breakdown = []
    for question in questions:
        candidate_answer = answers_by_question.get(str(question["id"]))
        breakdown.append({
            "question_id": question["id"],
            "question_text": question.get("text"),
            "question_type": question.get("type"),
            "options": question.get("options") or [],
            "correct_answer": question.get("answer"),
            "candidate_answer": candidate_answer["selected_answer"] if candidate_answer else "",
            "is_correct": candidate_answer["is_correct"] if candidate_answer else False
        })
    
    total_questions = len(breakdown)
    correct_answers = sum(1 for q in breakdown if q["is_correct"])
    recalculated = (correct_answers / total_questions) * 100 if total_questions > 0 else 0.0
    
    # Submissions stored without answers keep their recorded score
    final_score = recalculated if submission.get("answers") else float(submission.get("score") or 0)
    
    return {
        "questions": breakdown,
        "statistics": {
            "total_questions": total_questions,
            "correct_answers": correct_answers,
            "incorrect_answers": total_questions - correct_answers,
            "percentage": final_score
        },
        "score": final_score
    }


def build_class_results(class_doc: dict, assignments: List[dict], quizzes: Dict[str, dict],
                        candidates: Dict[str, dict]) -> List[Dict[str, Any]]:
    """
    Flatten every submission of a class into result rows.
    
    Only candidates currently enrolled in the class are included, and marks are
    computed from each assignment's current weightage.
    """
    enrolled = set(class_doc.get("students") or [])
    rows = []
    
    for assignment in assignments:
        quiz = quizzes.get(assignment.get("quiz_id")) or {}
        total_questions = len(quiz.get("questions") or [])
        weightage = assignment.get("weightage") or 0
        weightage_type = assignment.get("weightage_type") or "percentage"
        
        for submission in assignment.get("submissions") or []:
            candidate_id = submission.get("candidate_id")
            if candidate_id not in enrolled:
                logger.info(f"Skipping submission from {candidate_id} - not enrolled in class {class_doc.get('id')}")
                continue
            
            percentage = float(submission.get("score") or 0)
            rows.append({
                "assignment_id": assignment["id"],
                "quiz_title": quiz.get("title") or "Unknown Quiz",
                "candidate": candidates.get(candidate_id) or {"user_id": candidate_id},
                "total_questions": total_questions,
                "score": correct_count_from_percentage(percentage, total_questions),
                "percentage": percentage,
                "marks_obtained": marks_obtained(percentage, weightage, weightage_type),
                "weightage": weightage,
                "weightage_type": weightage_type,
                "submitted_at": submission.get("submitted_at"),
                "is_late_submission": submission.get("is_late_submission", False)
            })
    
    return rows
