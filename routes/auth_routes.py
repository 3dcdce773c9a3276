from fastapi import APIRouter, HTTPException, Request, Response, Depends
from datetime import datetime, timezone
import uuid
import logging
from models.user_models import User, UserRegister, UserLogin, PasswordReset, PasswordResetConfirm, UpdateProfile
from services.auth_service import (
    hash_password, verify_password, generate_reset_token, create_session,
    SESSION_TTL, RESET_TOKEN_TTL
)
from services.email_service import send_reset_email, EmailServiceError
from utils.database import db
from utils.datetime_utils import parse_datetime
from utils.dependencies import get_current_user

router = APIRouter(prefix="/auth", tags=["auth"])

RESET_MESSAGE = "If the email exists, a reset link has been sent"


def set_session_cookie(response: Response, session_token: str):
    response.set_cookie(
        key="session_token",
        value=session_token,
        httponly=True,
        secure=True,
        samesite="none",
        path="/",
        max_age=int(SESSION_TTL.total_seconds())
    )


def to_user(user_doc: dict) -> User:
    user_doc.pop('password_hash', None)
    user_doc["created_at"] = parse_datetime(user_doc["created_at"])
    return User(**user_doc)


@router.get("/me", response_model=User)
async def get_me(user: User = Depends(get_current_user)):
    return user


@router.post("/logout")
async def logout(request: Request, response: Response):
    session_token = request.cookies.get("session_token")
    if not session_token:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            session_token = auth_header.replace("Bearer ", "")
    if session_token:
        await db.user_sessions.delete_one({"session_token": session_token})
    response.delete_cookie("session_token", path="/")
    return {"message": "Logged out"}


@router.post("/register", response_model=User)
async def register(user_data: UserRegister, response: Response):
    email = user_data.email.lower()

    existing_user = await db.users.find_one({"email": email}, {"_id": 0})
    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered")

    registration_number = (user_data.registration_number or "").strip().upper() or None

    user_doc = {
        "user_id": f"user_{uuid.uuid4().hex[:12]}",
        "email": email,
        "name": user_data.name,
        "role": user_data.role,
        "password_hash": hash_password(user_data.password),
        "display_name": user_data.name,
        "registration_number": registration_number,
        "created_at": datetime.now(timezone.utc).isoformat()
    }

    await db.users.insert_one(user_doc)
    logging.info(f"Registered {user_data.role} {user_doc['user_id']}")

    session_token = await create_session(db, user_doc["user_id"])
    set_session_cookie(response, session_token)

    user_doc.pop('_id', None)
    return to_user(user_doc)


@router.post("/login", response_model=User)
async def login(login_data: UserLogin, response: Response):
    user_doc = await db.users.find_one({"email": login_data.email.lower()}, {"_id": 0})
    if not user_doc or not user_doc.get('password_hash'):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not verify_password(login_data.password, user_doc['password_hash']):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    session_token = await create_session(db, user_doc["user_id"])
    set_session_cookie(response, session_token)

    return to_user(user_doc)


@router.post("/forgot-password")
async def forgot_password(reset_data: PasswordReset):
    # Same answer whether or not the account exists
    user_doc = await db.users.find_one({"email": reset_data.email.lower()}, {"_id": 0})
    if not user_doc or not user_doc.get('password_hash'):
        return {"message": RESET_MESSAGE}

    reset_token = generate_reset_token()
    now = datetime.now(timezone.utc)

    await db.password_resets.insert_one({
        "user_id": user_doc["user_id"],
        "token": reset_token,
        "expires_at": (now + RESET_TOKEN_TTL).isoformat(),
        "created_at": now.isoformat(),
        "used": False
    })

    try:
        await send_reset_email(user_doc["email"], reset_token, user_doc["name"])
    except EmailServiceError as e:
        logging.error(f"Failed to send reset email: {str(e)}")

    return {"message": RESET_MESSAGE}


@router.post("/reset-password")
async def reset_password(reset_data: PasswordResetConfirm):
    reset_doc = await db.password_resets.find_one({
        "token": reset_data.token,
        "used": False
    }, {"_id": 0})

    if not reset_doc:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    if parse_datetime(reset_doc["expires_at"]) < datetime.now(timezone.utc):
        raise HTTPException(status_code=400, detail="Reset token has expired")

    await db.users.update_one(
        {"user_id": reset_doc["user_id"]},
        {"$set": {"password_hash": hash_password(reset_data.new_password)}}
    )

    await db.password_resets.update_one(
        {"token": reset_data.token},
        {"$set": {"used": True}}
    )

    # Existing sessions no longer count
    await db.user_sessions.delete_many({"user_id": reset_doc["user_id"]})

    return {"message": "Password reset successfully"}


@router.put("/profile", response_model=User)
async def update_profile(profile_data: UpdateProfile, user: User = Depends(get_current_user)):
    update_data = {}
    if profile_data.name is not None:
        update_data["name"] = profile_data.name
    if profile_data.display_name is not None:
        update_data["display_name"] = profile_data.display_name
    if profile_data.registration_number is not None:
        update_data["registration_number"] = profile_data.registration_number.strip().upper()

    if update_data:
        await db.users.update_one(
            {"user_id": user.user_id},
            {"$set": update_data}
        )

    updated_user = await db.users.find_one({"user_id": user.user_id}, {"_id": 0})
    return to_user(updated_user)
