from datetime import datetime
from typing import Optional
from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from vapeshop.schema.full_schema import PhoneAuthCode


class PhoneCodeStore:
    """Durable storage of outstanding one-time login codes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _commit(self):
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def create(self, phone: str, code: str, expires_at: datetime) -> PhoneAuthCode:
        record = PhoneAuthCode(phone=phone, code=code, expires_at=expires_at, used=False)
        self.session.add(record)
        await self._commit()
        return record

    async def find_valid(self, phone: str, code: str, now: datetime) -> Optional[PhoneAuthCode]:
        stmt = (
            select(PhoneAuthCode)
            .where(
                PhoneAuthCode.phone == phone,
                PhoneAuthCode.code == code,
                PhoneAuthCode.used.is_(False),
                PhoneAuthCode.expires_at > now,
            )
            .order_by(PhoneAuthCode.id.desc())
            .limit(1)
        )
        res = await self.session.execute(stmt)
        return res.scalars().first()

    async def mark_used(self, record: PhoneAuthCode, now: datetime) -> bool:
        """
        Conditional check-and-set. Only one caller can flip `used` for a record,
        so a False return means another request already consumed (or the code expired).
        """
        stmt = (
            update(PhoneAuthCode)
            .where(
                PhoneAuthCode.id == record.id,
                PhoneAuthCode.used.is_(False),
                PhoneAuthCode.expires_at > now,
            )
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        try:
            res = await self.session.execute(stmt)
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        await self._commit()

        changed = res.rowcount == 1
        if changed:
            set_committed_value(record, "used", True)
        return changed

    async def delete_expired_or_used(self, now: datetime, phone: Optional[str] = None) -> int:
        stmt = delete(PhoneAuthCode).where(
            or_(PhoneAuthCode.expires_at <= now, PhoneAuthCode.used.is_(True))
        )
        if phone is not None:
            stmt = stmt.where(PhoneAuthCode.phone == phone)

        try:
            res = await self.session.execute(stmt.execution_options(synchronize_session=False))
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        await self._commit()
        return res.rowcount or 0

    async def delete_unused(self, record: PhoneAuthCode) -> int:
        """Drop exactly this record unless it was already consumed."""
        stmt = delete(PhoneAuthCode).where(
            PhoneAuthCode.id == record.id,
            PhoneAuthCode.used.is_(False),
        )
        try:
            res = await self.session.execute(stmt.execution_options(synchronize_session=False))
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        await self._commit()
        return res.rowcount or 0
