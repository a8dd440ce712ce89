import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.auth import CurrentUser, authenticate_user, create_token_for_user, get_password_hash
from backend.app.core.database import get_db
from backend.app.core.errors import InvalidInput, Unauthorized
from backend.app.models.user import User
from backend.app.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from backend.app.services.brand_shortcuts import seed_default_brands

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create an account, seed its brand shortcuts and return a token."""
    username = request.username.strip()
    email = request.email.strip()
    if not username or not email:
        raise InvalidInput("All fields are required")

    result = await db.execute(select(User.id).where(or_(User.username == username, User.email == email)))
    if result.first() is not None:
        raise InvalidInput("Username or email already exists")

    user = User(username=username, email=email, password_hash=get_password_hash(request.password))
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise InvalidInput("Username or email already exists")
    await seed_default_brands(db, user.id)
    await db.commit()
    await db.refresh(user)

    logger.info("Registered user %s (id %d)", user.username, user.id)
    return AuthResponse(token=create_token_for_user(user), user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Log in with username or email."""
    if not request.username or not request.password:
        raise InvalidInput("Username and password required")

    user = await authenticate_user(db, request.username, request.password)
    if not user:
        raise Unauthorized("Invalid credentials")

    return AuthResponse(token=create_token_for_user(user), user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: CurrentUser):
    return current_user
