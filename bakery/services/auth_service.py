# bakery/services/auth_service.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict
from ..errors import Forbidden, Unauthorized
from ..utils.security import generate_admin_token, verify_password

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    def __init__(self, database):
        self.db = database

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Check back-office credentials and issue a bearer token"""
        email = email.strip().lower()
        async with self.db.transaction() as repo:
            admin = await repo.get_admin_by_email(email)

            # Unknown account and bad password look the same to the caller
            if not admin or not verify_password(password, admin.password_hash):
                logger.warning(f"Failed admin login for {email}")
                raise Unauthorized(INVALID_CREDENTIALS)
            if not admin.is_active:
                raise Forbidden("This account is disabled")

            await repo.touch_admin_login(admin.id, datetime.now(timezone.utc))

        logger.info(f"Admin {admin.email} logged in")
        return {
            "token": generate_admin_token(admin.id, admin.role),
            "admin": {
                "id": admin.id,
                "email": admin.email,
                "first_name": admin.first_name,
                "last_name": admin.last_name,
                "role": admin.role,
            },
        }
