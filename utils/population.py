"""Lookups that attach referenced documents to responses"""
from typing import Dict, Iterable, List

USER_PUBLIC_PROJECTION = {"_id": 0, "user_id": 1, "name": 1, "email": 1, "registration_number": 1}


async def fetch_users(db, user_ids: Iterable[str]) -> Dict[str, dict]:
    ids = list({uid for uid in user_ids if uid})
    if not ids:
        return {}
    users = await db.users.find(
        {"user_id": {"$in": ids}},
        USER_PUBLIC_PROJECTION
    ).to_list(len(ids))
    return {u["user_id"]: u for u in users}


async def populate_class(db, cls: dict, include_students: bool = True) -> dict:
    """Replace admin/student ids with name, email and registration number"""
    users = await fetch_users(db, [cls.get("admin_id")] + (cls.get("students") or []))
    cls["admin"] = users.get(cls.get("admin_id"))
    if include_students:
        cls["student_details"] = [users[sid] for sid in cls.get("students") or [] if sid in users]
    cls["student_count"] = len(cls.get("students") or [])
    return cls


async def fetch_quizzes(db, quiz_ids: Iterable[str], fields: List[str]) -> Dict[str, dict]:
    ids = list({qid for qid in quiz_ids if qid})
    if not ids:
        return {}
    projection = {"_id": 0, "id": 1}
    projection.update({f: 1 for f in fields})
    quizzes = await db.quizzes.find({"id": {"$in": ids}}, projection).to_list(len(ids))
    return {q["id"]: q for q in quizzes}


async def fetch_classes(db, class_ids: Iterable[str]) -> Dict[str, dict]:
    ids = list({cid for cid in class_ids if cid})
    if not ids:
        return {}
    classes = await db.classes.find(
        {"id": {"$in": ids}},
        {"_id": 0, "id": 1, "title": 1, "course_code": 1}
    ).to_list(len(ids))
    return {c["id"]: c for c in classes}


async def populate_assignments(db, assignments: List[dict], quiz_fields=("title", "questions")) -> List[dict]:
    """Attach `quiz` and `class` summaries to assignment documents"""
    quizzes = await fetch_quizzes(db, [a.get("quiz_id") for a in assignments], list(quiz_fields))
    classes = await fetch_classes(db, [a.get("class_id") for a in assignments])
    for assignment in assignments:
        assignment["quiz"] = quizzes.get(assignment.get("quiz_id"))
        assignment["class"] = classes.get(assignment.get("class_id"))
    return assignments
