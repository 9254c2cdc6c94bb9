import logging
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import auth_service
from app.core.exceptions import DuplicateError
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)


class UserService:
	def __init__(self, session: AsyncSession):
		self.session = session

	async def get_by_username(self, username: str) -> Optional[User]:
		result = await self.session.execute(select(User).where(User.username == username))
		return result.scalar_one_or_none()

	async def create_user(self, username: str, password: str, full_name: Optional[str] = None,
						  role: UserRole = UserRole.TECHNICIAN) -> User:
		if await self.get_by_username(username):
			raise DuplicateError("Username already registered", username=username)

		user = User(
			username=username,
			hashed_password=auth_service.hash_password(password),
			full_name=full_name,
			role=role,
			is_active=True,
		)
		self.session.add(user)
		await self.session.commit()

		logger.info(f"New user registered: {user.username} ({user.role.value})")
		return user

	async def authenticate(self, username: str, password: str) -> Optional[User]:
		user = await self.get_by_username(username)
		if not user or not auth_service.verify_password(password, user.hashed_password):
			return None
		return user

	async def ensure_first_admin(self, username: Optional[str], password: Optional[str]) -> Optional[User]:
		"""Create the bootstrap admin when the user table is empty"""
		if not username or not password:
			return None
		count = await self.session.scalar(select(func.count()).select_from(User))
		if count:
			return None
		user = await self.create_user(username, password, full_name="Administrator", role=UserRole.ADMIN)
		logger.warning(f"Bootstrap admin account created: {username}")
		return user
