"""
Auth endpoints — registration, login, current user & logout.
"""

from fastapi import APIRouter, Depends, Request

from campusdash.api.v1.deps import get_current_user, get_tokens, get_user_directory
from campusdash.core.config import settings
from campusdash.core.limiter import limiter
from campusdash.core.security import TokenService
from campusdash.models.user import User
from campusdash.schemas.user import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    RegisterRequest,
)
from campusdash.services.users import UserDirectory

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    users: UserDirectory = Depends(get_user_directory),
    tokens: TokenService = Depends(get_tokens),
) -> AuthResponse:
    """Create an account and return it with a fresh token."""
    user = await users.create(
        name=body.name,
        email=body.email,
        password=body.password,
        role=body.role,
    )
    return AuthResponse(
        message="User registered successfully",
        user=users.public_view(user),
        token=tokens.issue_for(user),
    )


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    users: UserDirectory = Depends(get_user_directory),
    tokens: TokenService = Depends(get_tokens),
) -> AuthResponse:
    """Authenticate with email/password. Email matching is case-insensitive."""
    user = await users.login(body.email, body.password)
    return AuthResponse(
        message="Login successful",
        user=users.public_view(user),
        token=tokens.issue_for(user),
    )


@router.get("/me", response_model=ProfileResponse)
async def read_current_user(
    current_user: User = Depends(get_current_user),
) -> ProfileResponse:
    """Return profile of the currently authenticated user."""
    return ProfileResponse(user=UserDirectory.public_view(current_user))


@router.post("/logout", response_model=MessageResponse)
async def logout(_user: User = Depends(get_current_user)) -> MessageResponse:
    """Tokens are stateless; the client discards its copy."""
    return MessageResponse(message="Logout successful")
