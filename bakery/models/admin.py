# bakery/models/admin.py
from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field
from .base import TimeStampedModel

class Admin(TimeStampedModel):
    """Back-office account"""
    id: UUID
    email: str
    password_hash: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str = "ADMIN"
    is_active: bool = True
    last_login_at: Optional[datetime] = None

class AdminPrincipal(BaseModel):
    """Identity proven by a valid bearer token"""
    admin_id: UUID
    role: str

class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)
