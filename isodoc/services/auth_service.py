import logging
from datetime import datetime
from typing import Optional, Tuple
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from isodoc.core.config import Settings, get_settings
from isodoc.core.exceptions import AuthenticationError, ConflictError, ValidationFailedError
from isodoc.core.security import create_access_token, hash_password, session_expiry, verify_password
from isodoc.models.base import User, utcnow
from isodoc.repositories.company_code_repository import CompanyCodeRepository
from isodoc.repositories.log_repository import LogRepository
from isodoc.repositories.user_repository import UserRepository
from isodoc.services.email_service import EmailService
from isodoc.services.secure_links import ACTION_RESET_PASSWORD, RESET_LINK_HOURS, SecureLinkData, SecureLinkSigner

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(
        self,
        session: AsyncSession,
        signer: SecureLinkSigner,
        email_service: EmailService,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.signer = signer
        self.email_service = email_service
        self.settings = settings or get_settings()
        self.users = UserRepository(session)
        self.logs = LogRepository(session)
        self.codes = CompanyCodeRepository(session)

    async def register(self, email: str, password: str, company_code: str) -> User:
        """Create an account from a company code; role and client come from the code."""
        email = email.strip().lower()
        if await self.users.get_by_email(email):
            raise ConflictError("Email already registered")

        code = await self.codes.get_by_code(company_code.strip())
        if code is None or not code.is_valid():
            await self.logs.add_entry(
                None, "invalid_company_code_attempt", details={"email": email, "code": company_code}
            )
            raise ValidationFailedError("Invalid or expired company code")

        creator = await self.users.get(code.created_by)
        tenant_id = creator.tenant_id if creator else None
        if code.role == "viewer" and tenant_id is None:
            raise ValidationFailedError("Company code is not linked to a client")

        if not await self.codes.consume(code):
            await self.logs.add_entry(
                None, "invalid_company_code_attempt", details={"email": email, "code": company_code}
            )
            raise ValidationFailedError("Invalid or expired company code")

        user = await self.users.create({
            "email": email,
            "password_hash": hash_password(password),
            "role": code.role,
            "tenant_id": tenant_id,
        })
        await self.logs.add_entry(
            user.id,
            "company_code_used",
            details={"code": code.code, "role": code.role, "tenant_id": tenant_id, "usage_count": code.usage_count},
        )
        logger.info(f"Registered user {user.id} ({user.role}) with company code {code.id}")
        return user

    async def login(self, email: str, password: str, remember: bool = False) -> Tuple[User, str, datetime]:
        user = await self.users.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")

        expires_at = session_expiry(remember)
        await self.users.update(user, {"last_login": utcnow(), "session_expiry": expires_at})
        await self.logs.add_entry(user.id, "login", details={"remember": remember, "tenant_id": user.tenant_id})
        return user, create_access_token(user.id, expires_at, remember), expires_at

    async def logout(self, user: User) -> None:
        await self.users.update(user, {"session_expiry": None})
        await self.logs.add_entry(user.id, "logout", details={"tenant_id": user.tenant_id})

    async def extend_session(self, user: User, remember: bool = False) -> Tuple[str, datetime]:
        expires_at = session_expiry(remember)
        await self.users.update(user, {"session_expiry": expires_at})
        return create_access_token(user.id, expires_at, remember), expires_at

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise ValidationFailedError("Current password is incorrect")
        await self.users.update(user, {"password_hash": hash_password(new_password)})
        await self.logs.add_entry(user.id, "password_change", details={"tenant_id": user.tenant_id})

    async def ensure_default_admin(self) -> Optional[User]:
        """Bootstrap the first administrator on an empty database."""
        email = self.settings.DEFAULT_ADMIN_EMAIL
        password = self.settings.DEFAULT_ADMIN_PASSWORD
        if not email or not password or await self.users.count() > 0:
            return None
        user = await self.users.create({
            "email": email.strip().lower(),
            "password_hash": hash_password(password),
            "role": "admin",
            "tenant_id": None,
        })
        logger.info(f"Default admin {user.email} created")
        return user

    async def request_password_reset(self, email: str) -> None:
        """Email a one-hour reset link. Unknown addresses are ignored silently."""
        user = await self.users.get_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return
        path = self.signer.generate(None, user.id, ACTION_RESET_PASSWORD, expiry_hours=RESET_LINK_HOURS)
        reset_url = f"{self.settings.PUBLIC_API_URL}{self.settings.API_V1_STR}{path}"
        await self.email_service.send_template("password_reset", [user.email], reset_url=reset_url)
        await self.logs.add_entry(user.id, "password_reset_requested", details={"tenant_id": user.tenant_id})

    def verify_reset_link(self, data: str, expires: str, signature: str) -> SecureLinkData:
        link = self.signer.verify(data, expires, signature)
        if link is None or link.action != ACTION_RESET_PASSWORD:
            raise ValidationFailedError("Invalid or expired reset link")
        return link

    def reset_page_url(self, data: str, expires: str, signature: str) -> str:
        query = urlencode({"data": data, "expires": expires, "signature": signature})
        return f"{self.settings.FRONTEND_URL}/reset-password?{query}"

    async def reset_password(self, data: str, expires: str, signature: str, new_password: str) -> User:
        link = self.verify_reset_link(data, expires, signature)
        user = await self.users.get(link.user_id)
        if user is None:
            raise ValidationFailedError("Invalid or expired reset link")
        await self.users.update(user, {"password_hash": hash_password(new_password), "session_expiry": None})
        await self.logs.add_entry(user.id, "password_reset", details={"tenant_id": user.tenant_id})
        return user
