# Fichier: lms/backend/app/schemas/user/user_schema.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional
from datetime import datetime

from app.models.user.user_model import UserRole


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: EmailStr
    role: UserRole


# --- Réponse de l'API ---
# Jamais de mot de passe ici.
class User(UserSummary):
    is_active: bool
    created_at: Optional[datetime] = None
    enrolled_course_ids: List[int] = []
    teaching_course_ids: List[int] = []


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User


# --- Inscription / enrôlement (admin) ---
class StudentRegisterRequest(BaseModel):
    email: EmailStr
    password: Optional[str] = None
    name: Optional[str] = None
    course_ids: List[int] = Field(default_factory=list)


class RegisterRequest(StudentRegisterRequest):
    role: UserRole = UserRole.STUDENT


class EnrollmentResult(BaseModel):
    user: User
    created: bool
    enrolled_course_ids: List[int]
    ignored_course_ids: List[int]


class UserPage(BaseModel):
    items: List[User]
    total_count: int
    page: int
    limit: int
    total_pages: int
