"""
Credential store: persisted user records.

Passwords only ever reach the database through create() or save(password=...),
which hash them; re-saving a user without a new password leaves the stored
hash untouched. The refresh-token hash is updated with single conditional
UPDATE statements so rotation stays atomic per user.
"""

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nac_api.config import AccountStatus, Settings, UserRole
from nac_api.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from nac_api.core.logging import get_logger
from nac_api.core.security import get_password_hash, validate_password_strength
from nac_api.models.device import Devices
from nac_api.models.user import Users

logger = get_logger(__name__)


class CredentialStore:
    """User persistence operations used by the login flow and admin endpoints."""

    def __init__(self, db: AsyncSession, settings: Settings) -> None:
        self.db = db
        self.settings = settings

    async def find_by_identifier(self, student_id: str) -> Users | None:
        result = await self.db.execute(
            select(Users).where(Users.student_id == student_id.strip())  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: int) -> Users | None:
        return await self.db.get(Users, user_id, populate_existing=True)

    async def get_or_404(self, user_id: int) -> Users:
        user = await self.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def list_users(self, status: str | None = None, role: str | None = None) -> list[Users]:
        """Users matching the optional filters, newest first."""
        query = select(Users)
        if status is not None:
            query = query.where(Users.status == status)  # type: ignore[arg-type]
        if role is not None:
            query = query.where(Users.role == role)  # type: ignore[arg-type]
        result = await self.db.execute(
            query.order_by(
                Users.created_at.desc(),  # type: ignore[attr-defined]
                Users.user_id.desc(),  # type: ignore[union-attr]
            )
        )
        return list(result.scalars().all())

    async def create(
        self,
        student_id: str,
        name: str,
        password: str,
        email: str | None = None,
        role: str | None = None,
    ) -> Users:
        """
        Create a user with a freshly hashed password.

        Raises:
            BadRequestError: weak password or role not allowed in this deployment
            ConflictError: student_id already registered
        """
        student_id = student_id.strip()
        name = name.strip()
        if not student_id or not name or not password:
            raise BadRequestError("studentId, name and password are required")

        is_valid, error_message = validate_password_strength(password)
        if not is_valid:
            raise BadRequestError(error_message)

        role = role or self._default_role()
        if role not in self.settings.ALLOWED_ROLES:
            raise BadRequestError(f"Invalid role: {role}")

        if await self.find_by_identifier(student_id) is not None:
            raise ConflictError("User already exists")

        user = Users(
            student_id=student_id,
            name=name,
            email=email.strip().lower() if email else None,
            role=role,
            password_hash=get_password_hash(password, self.settings.BCRYPT_ROUNDS),
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("User already exists") from exc
        await self.db.refresh(user)

        logger.info("user_created", created_user_id=user.user_id, role=role)
        return user

    async def save(self, user: Users, password: str | None = None) -> Users:
        """
        Persist changes to a user.

        The password is hashed only when a new plaintext value is supplied.
        """
        if password is not None:
            is_valid, error_message = validate_password_strength(password)
            if not is_valid:
                raise BadRequestError(error_message)
            user.password_hash = get_password_hash(password, self.settings.BCRYPT_ROUNDS)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def set_refresh_hash(self, user_id: int, token_hash: str | None) -> None:
        """Replace the stored refresh-token hash unconditionally (login)."""
        await self.db.execute(
            update(Users)
            .where(Users.user_id == user_id)  # type: ignore[arg-type]
            .values(refresh_token_hash=token_hash)
        )
        await self.db.commit()

    async def swap_refresh_hash(self, user_id: int, expected: str, new: str) -> bool:
        """
        Compare-and-set the stored refresh-token hash.

        Returns True only if the stored hash still equalled `expected`; of two
        concurrent callers presenting the same token, at most one wins.
        """
        result = await self.db.execute(
            update(Users)
            .where(
                Users.user_id == user_id,  # type: ignore[arg-type]
                Users.refresh_token_hash == expected,  # type: ignore[arg-type]
                Users.status == AccountStatus.ACTIVE,  # type: ignore[arg-type]
            )
            .values(refresh_token_hash=new)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return (result.rowcount or 0) == 1  # type: ignore[attr-defined]

    async def clear_refresh_hash(self, user_id: int) -> None:
        await self.set_refresh_hash(user_id, None)

    async def set_status(self, user_id: int, status: str, acting_user_id: int) -> Users:
        """
        Block or unblock a user. Blocking also revokes the user's refresh token.

        Raises:
            BadRequestError: unknown status
            NotFoundError: no such user
            ForbiddenError: an admin trying to block themselves
        """
        if status not in AccountStatus.ALL:
            raise BadRequestError('Invalid status. Must be "active" or "blocked"')

        user = await self.get_or_404(user_id)
        if user.user_id == acting_user_id and status == AccountStatus.BLOCKED:
            raise ForbiddenError("You cannot block yourself")

        user.status = status
        if status == AccountStatus.BLOCKED:
            user.refresh_token_hash = None
        user = await self.save(user)

        logger.info(
            "user_status_changed",
            target_user_id=user_id,
            status=status,
            actioned_by=acting_user_id,
        )
        return user

    async def delete(self, user_id: int, acting_user_id: int) -> int:
        """
        Delete a user together with every device it owns.

        Returns:
            Number of devices deleted

        Raises:
            NotFoundError: no such user
            ForbiddenError: an admin trying to delete themselves
        """
        user = await self.get_or_404(user_id)
        if user.user_id == acting_user_id:
            raise ForbiddenError("You cannot delete yourself")

        device_count = await self.db.scalar(
            select(func.count()).select_from(Devices).where(Devices.user_id == user_id)  # type: ignore[arg-type]
        )
        # Devices first: SQLite does not enforce ON DELETE CASCADE by default
        await self.db.execute(delete(Devices).where(Devices.user_id == user_id))  # type: ignore[arg-type]
        await self.db.delete(user)
        await self.db.commit()

        logger.info(
            "user_deleted",
            target_user_id=user_id,
            deleted_devices=device_count or 0,
            actioned_by=acting_user_id,
        )
        return device_count or 0

    def _default_role(self) -> str:
        if UserRole.STUDENT in self.settings.ALLOWED_ROLES:
            return UserRole.STUDENT
        return UserRole.ADMIN
