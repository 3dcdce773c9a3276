from passlib.context import CryptContext
from datetime import datetime, timezone, timedelta
import secrets

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_TTL = timedelta(days=7)
RESET_TOKEN_TTL = timedelta(hours=1)

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)

async def create_session(db, user_id: str) -> str:
    """Store a new session for the user and return its token"""
    session_token = secrets.token_urlsafe(32)
    now = datetime.now(timezone.utc)
    
    await db.user_sessions.insert_one({
        "user_id": user_id,
        "session_token": session_token,
        "expires_at": (now + SESSION_TTL).isoformat(),
        "created_at": now.isoformat()
    })
    return session_token

async def purge_expired_sessions(db) -> int:
    """Delete sessions past their expiry. Returns the number removed"""
    now = datetime.now(timezone.utc).isoformat()
    result = await db.user_sessions.delete_many({"expires_at": {"$lt": now}})
    return result.deleted_count
