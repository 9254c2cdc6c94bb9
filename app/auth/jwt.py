import logging
from datetime import timedelta, datetime, timezone
from typing import Dict, Any, Optional
from jose import JWTError, jwt

from passlib.context import CryptContext

from app.config import settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


class AuthService:
	@staticmethod
	def verify_password(plain_password: str, hashed_password: str) -> bool:
		"""Verify a password against its hash"""
		return pwd_context.verify(plain_password, hashed_password)

	@staticmethod
	def hash_password(password: str) -> str:
		return pwd_context.hash(password)

	@staticmethod
	def _encode(data: Dict[str, Any], token_type: str, lifetime: timedelta) -> str:
		to_encode = {k: (v.value if hasattr(v, "value") else v) for k, v in data.items()}
		to_encode.update({"exp": datetime.now(timezone.utc) + lifetime, "type": token_type})
		return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

	def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
		"""Create JWT access token"""
		return self._encode(data, "access", expires_delta or timedelta(hours=settings.JWT_EXPIRATION_HOURS))

	def create_refresh_token(self, data: Dict[str, Any]) -> str:
		return self._encode(data, "refresh", timedelta(days=settings.JWT_REFRESH_EXPIRATION_DAYS))

	@staticmethod
	def decode_token(token: str) -> Optional[Dict[str, Any]]:
		"""Decode and validate JWT token; None when invalid or expired"""
		try:
			return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
		except JWTError as e:
			logger.warning(f"JWT decode error: {e}")
			return None


auth_service = AuthService()
