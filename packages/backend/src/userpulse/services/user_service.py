"""User service — business logic for users, with cache and events.

Learn: Service layer separates business logic from HTTP routing.
API routes call services, services call the database, the cache, and
the event publisher.

Event publishing happens only after the database has answered:
- duplicate email → publish UserCreationFailed, raise
- insert succeeded → publish UserCreated

A failed publish is logged and swallowed here: the user row is already
committed, and the HTTP caller asked about the write, not the event.
"""

from typing import Optional

import structlog
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from userpulse.broker.publisher import EventPublisher
from userpulse.cache import RedisCache
from userpulse.db.models import User
from userpulse.events.errors import PublishError
from userpulse.events.types import UserCreated, UserCreationFailed
from userpulse.schemas.user import UserRead

logger = structlog.get_logger()

EMAIL_ALREADY_REGISTERED = "Email already registered"


class UserNotFoundError(Exception):
    pass


class EmailAlreadyRegisteredError(Exception):
    pass


class UserService:
    """Business logic for user management."""

    def __init__(
        self,
        db: AsyncSession,
        publisher: Optional[EventPublisher] = None,
        cache: Optional[RedisCache] = None,
    ):
        self.db = db
        self.publisher = publisher
        self.cache = cache

    # ─── Writes ─────────────────────────────────────────

    async def create_user(self, name: str, email: str) -> User:
        if await self._find_by_email(email) is not None:
            await self._publish(
                UserCreationFailed(attempted_email=email, reason=EMAIL_ALREADY_REGISTERED)
            )
            raise EmailAlreadyRegisteredError(email)

        user = User(name=name, email=email)
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same email
            await self.db.rollback()
            await self._publish(
                UserCreationFailed(attempted_email=email, reason=EMAIL_ALREADY_REGISTERED)
            )
            raise EmailAlreadyRegisteredError(email) from None
        await self.db.refresh(user)

        logger.info("user.created", user_id=user.id)
        await self._publish(UserCreated(name=user.name, email=user.email))
        if self.cache:
            await self.cache.put(user.email, _to_cache(user))
        return user

    async def update_user(
        self,
        user_id: int,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        old_email = user.email
        if name:
            user.name = name
        if email and email != old_email:
            if await self._find_by_email(email) is not None:
                raise EmailAlreadyRegisteredError(email)
            user.email = email

        await self.db.commit()
        await self.db.refresh(user)
        if self.cache:
            await self.cache.evict(*{old_email, user.email})
        return user

    async def soft_delete_user(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        if self.cache:
            await self.cache.evict(user.email)
        user.deleted = True
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("user.soft_deleted", user_id=user.id)
        return user

    # ─── Reads ──────────────────────────────────────────

    async def list_users(self) -> list[User]:
        result = await self.db.execute(
            select(User).where(User.deleted.is_(False)).order_by(User.id)
        )
        return list(result.scalars().all())

    async def list_deleted_users(self) -> list[User]:
        result = await self.db.execute(
            select(User).where(User.deleted.is_(True)).order_by(User.id)
        )
        return list(result.scalars().all())

    async def get_by_email(self, email: str) -> dict:
        """Look up a live user by email through the cache.

        Returns the serialized user (what the cache holds), not the ORM row.
        """
        async def load() -> Optional[dict]:
            user = await self._find_by_email(email)
            if user is None or user.deleted:
                return None
            return _to_cache(user)

        if self.cache:
            found = await self.cache.get_or_compute(email, load)
        else:
            found = await load()
        if found is None:
            raise UserNotFoundError(email)
        return found

    # ─── Helpers ────────────────────────────────────────

    async def _find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def _publish(self, event: BaseModel) -> None:
        if self.publisher is None:
            logger.warning("user.event_publish_skipped", event_type=event.type)
            return
        try:
            await self.publisher.publish(event)
        except PublishError as e:
            logger.warning(
                "user.event_publish_failed",
                event_type=event.type,
                kind=e.kind.value,
                error=str(e),
            )


def _to_cache(user: User) -> dict:
    return UserRead.model_validate(user).model_dump(mode="json")
