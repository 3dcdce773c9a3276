from pydantic import BaseModel, ConfigDict, EmailStr
from typing import Optional, Literal
from datetime import datetime

class User(BaseModel):
    model_config = ConfigDict(extra="ignore")
    user_id: str
    email: str
    name: str
    role: str  # admin or candidate
    registration_number: Optional[str] = None  # e.g. 22BCE10100, candidates only
    display_name: Optional[str] = None
    created_at: datetime

class UserRegister(BaseModel):
    email: EmailStr
    password: str
    name: str
    role: Literal["admin", "candidate"] = "candidate"
    registration_number: Optional[str] = None

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class PasswordReset(BaseModel):
    email: EmailStr

class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str

class UpdateProfile(BaseModel):
    name: Optional[str] = None
    display_name: Optional[str] = None
    registration_number: Optional[str] = None
