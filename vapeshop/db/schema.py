from sqlmodel import SQLModel
from vapeshop.db.connection import async_engine
from vapeshop.schema import full_schema  # noqa: F401  registers tables on SQLModel.metadata


async def create_all_tables(engine=async_engine):
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def drop_all_tables(engine=async_engine):
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
