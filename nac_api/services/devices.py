"""
Device registry: MAC-address binding, per-user device cap, and reassignment.

Ownership lives in a single column (devices.user_id), so a device is always in
exactly one user's list and moving it between users is one UPDATE. Every
count-then-bind sequence runs in its own transaction that locks the owning
user row (the database write lock on SQLite) and recounts with a locking read
right before the cap check, so two concurrent binds for one user cannot both
pass a stale count. A duplicate MAC that slips past the lookup is caught by
the unique index and folded into the rebind path.

Each sub-step commits on its own and is safe to repeat: re-running a bind for
a device the user already owns only refreshes ip_address/last_seen.
"""

from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nac_api.config import DeviceStatus, Settings
from nac_api.core.errors import (
    BadRequestError,
    ConflictError,
    DeviceBlockedError,
    DeviceLimitExceededError,
    NotFoundError,
    PolicyViolationError,
    ServiceError,
)
from nac_api.core.logging import get_logger
from nac_api.core.security import normalize_mac
from nac_api.models.device import Devices
from nac_api.models.user import Users
from nac_api.utils import utcnow

logger = get_logger(__name__)


class DeviceRegistry:
    """Device persistence plus the binding policy applied at login."""

    def __init__(self, db: AsyncSession, settings: Settings) -> None:
        self.db = db
        self.settings = settings

    @property
    def max_devices(self) -> int:
        return self.settings.MAX_DEVICES_PER_USER

    async def find_by_mac(self, mac: str) -> Devices | None:
        result = await self.db.execute(
            select(Devices)
            .where(Devices.mac_address == normalize_mac(mac))  # type: ignore[arg-type]
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_id(self, device_id: int) -> Devices | None:
        return await self.db.get(Devices, device_id, populate_existing=True)

    async def get_or_404(self, device_id: int) -> Devices:
        device = await self.find_by_id(device_id)
        if device is None:
            raise NotFoundError("Device not found")
        return device

    async def count_for_user(self, user_id: int, *, for_update: bool = False) -> int:
        if for_update:
            # Locking read: sees rows other transactions committed after our snapshot
            result = await self.db.execute(
                select(Devices.device_id)
                .where(Devices.user_id == user_id)  # type: ignore[arg-type]
                .with_for_update()
            )
            return len(result.all())
        count = await self.db.scalar(
            select(func.count()).select_from(Devices).where(Devices.user_id == user_id)  # type: ignore[arg-type]
        )
        return count or 0

    async def list_for_user(self, user_id: int) -> list[Devices]:
        """A user's devices in the order they were bound to that user."""
        result = await self.db.execute(
            select(Devices)
            .where(Devices.user_id == user_id)  # type: ignore[arg-type]
            .order_by(Devices.bound_at, Devices.device_id)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())

    async def list_for_users(self, user_ids: list[int]) -> dict[int, list[Devices]]:
        """Device lists for several users at once, each in binding order."""
        owned: dict[int, list[Devices]] = {user_id: [] for user_id in user_ids}
        if not user_ids:
            return owned
        result = await self.db.execute(
            select(Devices)
            .where(Devices.user_id.in_(user_ids))  # type: ignore[attr-defined]
            .order_by(Devices.bound_at, Devices.device_id)  # type: ignore[arg-type]
        )
        for device in result.scalars().all():
            owned[device.user_id].append(device)
        return owned

    async def list_with_owners(self, status: str | None = None) -> list[tuple[Devices, Users]]:
        query = select(Devices, Users).join(
            Users, Devices.user_id == Users.user_id  # type: ignore[arg-type]
        )
        if status is not None:
            query = query.where(Devices.status == status)  # type: ignore[arg-type]
        result = await self.db.execute(
            query.order_by(Devices.last_seen.desc(), Devices.device_id)  # type: ignore[union-attr]
        )
        return [(device, owner) for device, owner in result.all()]

    async def register_or_rebind(
        self,
        mac: str,
        ip: str | None,
        user: Users,
        *,
        is_randomized_mac: bool = False,
    ) -> Devices:
        """
        Bind the device presenting `mac` to `user` at login.

        - randomized MAC: rejected before anything is read or written
        - unknown MAC: created for the user if under the cap
        - blocked device: rejected, never rebound or refreshed
        - MAC owned by another user: moved to this user if under the cap
        - MAC already owned by this user: ip/last_seen refreshed in place

        Raises:
            PolicyViolationError, DeviceLimitExceededError, DeviceBlockedError,
            BadRequestError (malformed MAC)
        """
        if is_randomized_mac:
            raise PolicyViolationError()

        mac = normalize_mac(mac)
        # Plain ints survive a rollback; ORM attributes would be expired
        user_id = user.user_id
        if user_id is None:
            raise ValueError("User ID cannot be None")

        device = await self.find_by_mac(mac)
        if device is None:
            created = await self._create(mac, ip, user_id)
            if created is not None:
                return created
            # Lost an insert race for this MAC; continue with the winner's row
            device = await self.find_by_mac(mac)
            if device is None:
                raise ConflictError("Device registration conflict, please retry")

        return await self._rebind(device, ip, user_id)

    async def register(self, mac: str, ip: str | None, student_id: str) -> Devices:
        """
        Explicitly register a new device for a student (admin operation).

        Raises:
            BadRequestError: missing/malformed fields
            ConflictError: MAC already registered
            NotFoundError: unknown student
            DeviceLimitExceededError: student already at the cap
        """
        if not mac or not student_id:
            raise BadRequestError("macAddress and studentId are required")
        mac = normalize_mac(mac)

        if await self.find_by_mac(mac) is not None:
            raise ConflictError("Device already registered")

        result = await self.db.execute(
            select(Users).where(Users.student_id == student_id.strip())  # type: ignore[arg-type]
        )
        student = result.scalar_one_or_none()
        if student is None:
            raise NotFoundError("Student not found")

        device = await self._create(mac, ip, student.user_id, seen=False)  # type: ignore[arg-type]
        if device is None:
            raise ConflictError("Device already registered")
        return device

    async def set_status(self, device_id: int, status: str) -> Devices:
        if status not in DeviceStatus.ALL:
            raise BadRequestError('Invalid status. Must be "active" or "blocked"')
        device = await self.get_or_404(device_id)
        device.status = status
        self.db.add(device)
        await self.db.commit()
        await self.db.refresh(device)
        logger.info("device_status_changed", device_id=device_id, status=status)
        return device

    async def delete(self, device_id: int) -> Devices:
        """Delete a device; it leaves its owner's list with the row."""
        device = await self.get_or_404(device_id)
        await self.db.delete(device)
        await self.db.commit()
        logger.info(
            "device_deleted",
            device_id=device_id,
            mac_address=device.mac_address,
            owner_id=device.user_id,
        )
        return device

    async def _begin_bind(self, user_id: int) -> None:
        """
        Start the transaction a count-then-bind runs in and lock the owner row.

        Any read transaction left open by earlier lookups is ended first, so
        nothing after the lock reads from a stale snapshot. SQLite ignores
        FOR UPDATE; there the database write lock is taken up front instead,
        which serializes concurrent binds the same way.
        """
        await self.db.commit()
        connection = await self.db.connection()
        if connection.dialect.name == "sqlite":
            await self.db.execute(text("BEGIN IMMEDIATE"))
        result = await self.db.execute(
            select(Users.user_id)
            .where(Users.user_id == user_id)  # type: ignore[arg-type]
            .with_for_update()
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError("User not found")

    async def _release(self) -> None:
        # Nothing was written; ends the transaction and drops the locks
        await self.db.commit()

    async def _ensure_capacity(self, user_id: int) -> None:
        # Always recounted after the lock, as a locking read
        count = await self.count_for_user(user_id, for_update=True)
        if count >= self.max_devices:
            logger.info(
                "device_limit_reached",
                target_user_id=user_id,
                device_count=count,
                limit=self.max_devices,
            )
            raise DeviceLimitExceededError(self.max_devices)

    async def _create(
        self, mac: str, ip: str | None, user_id: int, seen: bool = True
    ) -> Devices | None:
        """Insert a new device for user_id; returns None if the MAC was inserted concurrently."""
        try:
            await self._begin_bind(user_id)
            await self._ensure_capacity(user_id)
        except ServiceError:
            await self._release()
            raise

        now = utcnow()
        device = Devices(
            mac_address=mac,
            ip_address=ip,
            user_id=user_id,
            bound_at=now,
            last_seen=now if seen else None,
        )
        self.db.add(device)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info("device_insert_race", mac_address=mac, target_user_id=user_id)
            return None

        await self.db.refresh(device)
        logger.info(
            "device_registered",
            device_id=device.device_id,
            mac_address=mac,
            target_user_id=user_id,
        )
        return device

    async def _rebind(self, device: Devices, ip: str | None, user_id: int) -> Devices:
        mac = device.mac_address
        try:
            await self._begin_bind(user_id)
            # Re-read under the lock: a concurrent request may have moved or blocked it
            current = await self.find_by_mac(mac)
            if current is None:
                raise ConflictError("Device registration conflict, please retry")
            device = current
            if device.is_blocked:
                logger.info(
                    "device_blocked_login", device_id=device.device_id, target_user_id=user_id
                )
                raise DeviceBlockedError()
            if device.user_id != user_id:
                await self._ensure_capacity(user_id)
        except ServiceError:
            await self._release()
            raise

        now = utcnow()
        if device.user_id != user_id:
            previous_owner = device.user_id
            # One UPDATE: leaves the old owner's list and joins the new owner's
            device.user_id = user_id
            device.bound_at = now
            logger.warning(
                "device_reassigned",
                device_id=device.device_id,
                mac_address=device.mac_address,
                previous_owner_id=previous_owner,
                target_user_id=user_id,
            )

        if ip:
            device.ip_address = ip
        device.last_seen = now
        self.db.add(device)
        await self.db.commit()
        await self.db.refresh(device)
        return device
