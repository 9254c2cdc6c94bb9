import logging
from uuid import UUID

from fastapi import APIRouter, status, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user, get_current_admin
from app.auth.jwt import auth_service
from app.database import get_session
from app.models.user import User
from app.schemas.auth import UserResponse, RegisterRequest, LoginResponse, LoginRequest, RefreshRequest
from app.services.user_service import UserService

router = APIRouter()
logger = logging.getLogger(__name__)


def _tokens_for(user: User) -> LoginResponse:
	return LoginResponse(
		access_token=auth_service.create_access_token({"sub": str(user.id), "role": user.role}),
		refresh_token=auth_service.create_refresh_token({"sub": str(user.id)}),
		user=UserResponse.model_validate(user)
	)


@router.post("/register", response_model=UserResponse,
			 status_code=status.HTTP_201_CREATED)
async def register(
		request: RegisterRequest,
		session: AsyncSession = Depends(get_session),
		_: User = Depends(get_current_admin)
):
	"""Register a new user (admin only)."""
	user = await UserService(session).create_user(
		request.username, request.password, request.full_name, request.role
	)
	return user

@router.post("/login", response_model=LoginResponse)
async def login(
		request: LoginRequest,
		session: AsyncSession = Depends(get_session)
):
	"""Login and get access token."""
	user = await UserService(session).authenticate(request.username, request.password)

	if not user:
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail="Incorrect username or password",
			headers={"WWW-Authenticate": "Bearer"}
		)
	if not user.is_active:
		raise HTTPException(
			status_code=status.HTTP_400_BAD_REQUEST,
			detail="Inactive user"
		)

	logger.info(f"User logged in: {user.username}")
	return _tokens_for(user)

@router.post("/refresh", response_model=LoginResponse)
async def refresh_token(
		body: RefreshRequest,
		session: AsyncSession = Depends(get_session)
):
	"""Exchange a refresh token for a new token pair"""
	payload = auth_service.decode_token(body.refresh_token)

	if not payload or payload.get("type") != "refresh":
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail="Invalid refresh token"
		)

	try:
		user_id = UUID(payload.get("sub", ""))
	except ValueError:
		user_id = None

	user = None
	if user_id:
		result = await session.execute(select(User).where(User.id == user_id))
		user = result.scalar_one_or_none()

	if not user or not user.is_active:
		raise HTTPException(
			status_code=status.HTTP_401_UNAUTHORIZED,
			detail="User not found or inactive"
		)
	return _tokens_for(user)

@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
	"""Get current user information"""
	return current_user
