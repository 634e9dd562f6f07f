"""Authentication schemas"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from app.models.user import UserRole


class Token(BaseModel):
    """JWT token response"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class ProfileRecord(BaseModel):
    """Profile row as read from the data source"""
    id: str
    email: str
    full_name: Optional[str] = None
    role: UserRole = UserRole.USER
    is_active: bool = True
    hashed_password: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


class UserResponse(BaseModel):
    """Profile response"""
    id: str
    email: str
    full_name: Optional[str]
    role: UserRole
    is_active: bool
    created_at: Optional[datetime]
    last_login: Optional[datetime]

    class Config:
        from_attributes = True


class Identity(BaseModel):
    """Who is asking, as far as access decisions are concerned"""
    is_local_admin: bool = False
    profile_role: Optional[str] = None
    has_session: bool = False

    class Config:
        frozen = True


class AccessDecision(BaseModel):
    """Allow, or deny with the path the viewer should be sent to"""
    allowed: bool
    redirect_to: Optional[str] = None

    class Config:
        frozen = True


class MeResponse(BaseModel):
    """Current identity and profile"""
    identity: Identity
    profile: Optional[UserResponse] = None
