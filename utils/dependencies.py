from fastapi import HTTPException, Request, Depends
from datetime import datetime, timezone
from models.user_models import User
from utils.database import db
from utils.datetime_utils import parse_datetime


async def get_current_user(request: Request) -> User:
    session_token = request.cookies.get("session_token")
    if not session_token:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            session_token = auth_header.replace("Bearer ", "")
    
    if not session_token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    
    session = await db.user_sessions.find_one({"session_token": session_token}, {"_id": 0})
    if not session:
        raise HTTPException(status_code=401, detail="Invalid session")
    
    if parse_datetime(session["expires_at"]) < datetime.now(timezone.utc):
        raise HTTPException(status_code=401, detail="Session expired")
    
    user_doc = await db.users.find_one({"user_id": session["user_id"]}, {"_id": 0, "password_hash": 0})
    if not user_doc:
        raise HTTPException(status_code=404, detail="User not found")
    
    user_doc["created_at"] = parse_datetime(user_doc["created_at"])
    
    return User(**user_doc)


async def require_admin(user: User = Depends(get_current_user)):
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


async def require_candidate(user: User = Depends(get_current_user)):
    if user.role != "candidate":
        raise HTTPException(status_code=403, detail="Only candidates can perform this action")
    return user
