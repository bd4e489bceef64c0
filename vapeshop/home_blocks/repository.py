from typing import List, Optional
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from vapeshop.home_blocks.constants import DEFAULT_BLOCKS
from vapeshop.schema.full_schema import HomeBlock


class HomeBlockRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _commit(self):
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def list_all(self) -> List[HomeBlock]:
        stmt = select(HomeBlock).order_by(HomeBlock.position, HomeBlock.id)
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def get_by_key(self, key: str) -> Optional[HomeBlock]:
        res = await self.session.execute(select(HomeBlock).where(HomeBlock.key == key))
        return res.scalar_one_or_none()

    async def seed_defaults(self) -> List[HomeBlock]:
        """Insert the default set when the table is empty; returns the current rows either way."""
        blocks = await self.list_all()
        if blocks:
            return blocks
        self.session.add_all([HomeBlock(**b) for b in DEFAULT_BLOCKS])
        await self._commit()
        return await self.list_all()

    async def replace(self, blocks: List[dict]) -> List[HomeBlock]:
        """Replace the whole configuration. A block sent without a title keeps its stored or default title."""
        known_titles = {b["key"]: b["title"] for b in DEFAULT_BLOCKS}
        known_titles.update({b.key: b.title for b in await self.list_all()})

        await self.session.execute(delete(HomeBlock).execution_options(synchronize_session=False))
        self.session.expunge_all()
        self.session.add_all([
            HomeBlock(
                key=b["key"],
                title=b.get("title") or known_titles.get(b["key"], b["key"]),
                description=b.get("description"),
                is_visible=b["is_visible"],
                position=b["position"],
            )
            for b in blocks
        ])
        await self._commit()
        return await self.list_all()

    async def set_visibility(self, key: str, visible: bool) -> Optional[HomeBlock]:
        block = await self.get_by_key(key)
        if block is None:
            return None
        block.is_visible = visible
        self.session.add(block)
        await self._commit()
        return block

    async def set_position(self, key: str, position: int) -> Optional[HomeBlock]:
        block = await self.get_by_key(key)
        if block is None:
            return None
        block.position = position
        self.session.add(block)
        await self._commit()
        return block

    async def reset(self) -> List[HomeBlock]:
        return await self.replace([dict(b) for b in DEFAULT_BLOCKS])
