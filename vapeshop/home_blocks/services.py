import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional
from sqlalchemy.exc import SQLAlchemyError
from vapeshop.home_blocks.constants import logger
from vapeshop.home_blocks.models import block_out
from vapeshop.home_blocks.repository import HomeBlockRepository


class HomeBlocksCache:
    """
    In-process copy of the homepage configuration. The database row set is the source of truth;
    every write goes through `invalidate`, and a version counter keeps a load that raced a write
    from repopulating the cache with stale rows.
    """

    def __init__(self):
        self._value: Optional[Dict[str, Any]] = None
        self._version = 0
        self._lock = asyncio.Lock()

    async def get_or_set(self, loader: Callable[[], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
        if self._value is not None:
            return self._value

        async with self._lock:
            if self._value is not None:
                return self._value
            version = self._version
            value = await loader()
            if version == self._version:
                self._value = value
            logger.debug("home_blocks.cache.filled", extra={"version": version})
            return value

    def invalidate(self):
        self._version += 1
        self._value = None
        logger.debug("home_blocks.cache.invalidated", extra={"version": self._version})


def blocks_config(blocks) -> Dict[str, Any]:
    return {"blocks": [block_out(b) for b in blocks]}


async def load_blocks_config(repo: HomeBlockRepository) -> Dict[str, Any]:
    return blocks_config(await repo.list_all())


async def get_blocks_config(repo: HomeBlockRepository, cache: HomeBlocksCache) -> Dict[str, Any]:
    return await cache.get_or_set(lambda: load_blocks_config(repo))


async def replace_blocks_config(repo: HomeBlockRepository, cache: HomeBlocksCache, blocks) -> Dict[str, Any]:
    rows = [
        {
            "key": b.id,
            "title": b.title,
            "description": b.description,
            "is_visible": b.isVisible,
            "position": b.order,
        }
        for b in blocks
    ]
    try:
        saved = await repo.replace(rows)
    finally:
        cache.invalidate()
    logger.info("home_blocks.config.replaced", extra={"count": len(saved)})
    return blocks_config(saved)


async def toggle_block(repo: HomeBlockRepository, cache: HomeBlocksCache, key: str, visible: bool):
    try:
        block = await repo.set_visibility(key, visible)
    finally:
        cache.invalidate()
    if block is None:
        return None
    logger.info("home_blocks.block.toggled", extra={"block": key, "visible": visible})
    return blocks_config(await repo.list_all())


async def reorder_block(repo: HomeBlockRepository, cache: HomeBlocksCache, key: str, position: int):
    try:
        block = await repo.set_position(key, position)
    finally:
        cache.invalidate()
    if block is None:
        return None
    logger.info("home_blocks.block.reordered", extra={"block": key, "position": position})
    return blocks_config(await repo.list_all())


async def reset_blocks_config(repo: HomeBlockRepository, cache: HomeBlocksCache) -> Dict[str, Any]:
    try:
        saved = await repo.reset()
    finally:
        cache.invalidate()
    logger.info("home_blocks.config.reset")
    return blocks_config(saved)


async def seed_home_blocks(session_maker) -> None:
    """Insert the default blocks into an empty table. Runs once at startup; reads never seed."""
    try:
        async with session_maker() as session:
            blocks = await HomeBlockRepository(session).seed_defaults()
    except (SQLAlchemyError, OSError):
        logger.exception("home_blocks.seed.failed")
        return
    logger.info("home_blocks.seeded", extra={"count": len(blocks)})
