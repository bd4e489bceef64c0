from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from vapeshop.auth.utils import normalize_phone
from vapeshop.schema.full_schema import Users


class UserDirectory:
    """Lookups and small updates on user accounts. Codes are matched to users by normalized phone."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def by_normalized_phone(self, phone: str) -> Optional[Users]:
        stmt = select(Users).where(Users.normalized_phone == phone).order_by(Users.id).limit(1)
        res = await self.session.execute(stmt)
        return res.scalars().first()

    async def by_id(self, user_id: int) -> Optional[Users]:
        return await self.session.get(Users, user_id)

    async def by_public_id(self, public_id) -> Optional[Users]:
        try:
            pid = public_id if isinstance(public_id, UUID) else UUID(str(public_id))
        except ValueError:
            return None
        stmt = select(Users).where(Users.public_id == pid)
        res = await self.session.execute(stmt)
        return res.scalar_one_or_none()

    async def by_telegram_id(self, telegram_id: int) -> Optional[Users]:
        stmt = select(Users).where(Users.telegram_id == telegram_id)
        res = await self.session.execute(stmt)
        return res.scalar_one_or_none()

    async def touch_last_login(self, user: Users, at: datetime) -> None:
        stmt = (
            update(Users)
            .where(Users.id == user.id)
            .values(last_login=at)
            .execution_options(synchronize_session=False)
        )
        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError:
            # keep the loaded profile readable after the rollback expires the identity map
            self.session.expunge(user)
            await self.session.rollback()
            raise
        set_committed_value(user, "last_login", at)

    async def create_from_telegram(self, telegram_id: int, username=None, first_name=None,
                                   last_name=None, photo_url=None, at: Optional[datetime] = None) -> Users:
        user = Users(
            telegram_id=telegram_id,
            username=username,
            first_name=first_name,
            last_name=last_name,
            photo_url=photo_url,
            language_code="ru",
            last_login=at,
        )
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            # concurrent first login for the same telegram account
            await self.session.rollback()
            existing = await self.by_telegram_id(telegram_id)
            if existing is None:
                raise
            return existing
        return user

    async def update_telegram_profile(self, user: Users, username=None, photo_url=None,
                                      at: Optional[datetime] = None) -> Users:
        if username:
            user.username = username
        if photo_url:
            user.photo_url = photo_url
        if at is not None:
            user.last_login = at
        self.session.add(user)
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return user

    async def create(self, **fields) -> Users:
        """Used by seed scripts and tests; keeps normalized_phone in sync with phone."""
        if fields.get("phone") and not fields.get("normalized_phone"):
            fields["normalized_phone"] = normalize_phone(fields["phone"])
        user = Users(**fields)
        self.session.add(user)
        await self.session.commit()
        return user
