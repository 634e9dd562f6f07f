"""Authentication API endpoints"""

from datetime import datetime, timedelta
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
import structlog

from app.config import settings
from app.api.deps import get_data_source
from app.schemas.auth import Identity, MeResponse, ProfileRecord, Token, UserResponse
from app.services.access import AccessGate, has_permission
from app.services.data_source import DataSource, FetchFailure

router = APIRouter()
logger = structlog.get_logger()

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# OAuth2 scheme; a missing token means "no session", not an error
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash password"""
    return pwd_context.hash(password)


def create_access_token(profile: ProfileRecord) -> str:
    """Create JWT access token"""
    expire = datetime.utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": profile.id,
        "role": profile.role.value,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


async def identity_from_token(
    token: Optional[str],
    data_source: DataSource,
) -> Tuple[Identity, Optional[ProfileRecord]]:
    """Resolve who is calling from an optional bearer token.

    Inactive profiles keep neither their session nor their role.
    """
    profile = None
    if token:
        try:
            payload = jwt.decode(
                token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
            )
            user_id = payload.get("sub")
            if payload.get("type") != "access":
                user_id = None
        except JWTError:
            user_id = None

        if user_id:
            try:
                profile = await data_source.fetch_profile(user_id)
            except FetchFailure:
                logger.warning("Profile lookup failed, treating request as anonymous", user_id=user_id)

    has_session = profile is not None and profile.is_active
    identity = Identity(
        is_local_admin=settings.local_admin_enabled,
        profile_role=profile.role.value if has_session else None,
        has_session=has_session,
    )
    return identity, profile


async def get_identity(
    token: Optional[str] = Depends(oauth2_scheme),
    data_source: DataSource = Depends(get_data_source),
) -> Identity:
    identity, _ = await identity_from_token(token, data_source)
    return identity


def require_access(require_admin: bool = False, permission: Optional[str] = None):
    """Dependency factory for guarded routes"""
    async def access_checker(identity: Identity = Depends(get_identity)) -> Identity:
        decision = AccessGate(require_admin).resolve(identity)
        if not decision.allowed:
            raise HTTPException(
                status_code=(
                    status.HTTP_403_FORBIDDEN if identity.has_session
                    else status.HTTP_401_UNAUTHORIZED
                ),
                detail={"message": "Access denied", "redirect_to": decision.redirect_to},
                headers={"Location": decision.redirect_to},
            )
        if permission and not has_permission(identity, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"message": "Insufficient permissions", "redirect_to": None},
            )
        return identity
    return access_checker


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    data_source: DataSource = Depends(get_data_source),
):
    """Authenticate user and return an access token"""
    profile = await data_source.fetch_profile_by_email(form_data.username)

    if (
        not profile
        or not profile.hashed_password
        or not verify_password(form_data.password, profile.hashed_password)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not profile.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )

    logger.info("Profile logged in", user_id=profile.id, role=profile.role.value)

    return Token(
        access_token=create_access_token(profile),
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.get("/me", response_model=MeResponse)
async def get_current_identity(
    token: Optional[str] = Depends(oauth2_scheme),
    data_source: DataSource = Depends(get_data_source),
):
    """Identity used for access decisions, plus the profile when there is one"""
    identity, profile = await identity_from_token(token, data_source)
    return MeResponse(
        identity=identity,
        profile=UserResponse.model_validate(profile.model_dump()) if profile else None,
    )
