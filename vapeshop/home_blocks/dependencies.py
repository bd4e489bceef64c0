from fastapi import Body, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from vapeshop.db.dependencies import get_session
from vapeshop.home_blocks.constants import logger
from vapeshop.home_blocks.models import BlockOrderIn, BlockVisibilityIn, HomeBlocksIn
from vapeshop.home_blocks.repository import HomeBlockRepository
from vapeshop.home_blocks.services import HomeBlocksCache


def get_home_blocks_cache(request: Request) -> HomeBlocksCache:
    return request.app.state.home_blocks_cache


def get_home_block_repository(session: AsyncSession = Depends(get_session)) -> HomeBlockRepository:
    return HomeBlockRepository(session)


def _validated(model, payload, message: str):
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.warning("home_blocks.validation.failed", extra={"errors": [err.get("msg") for err in e.errors()]})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


async def blocks_validation(payload=Body(...)) -> HomeBlocksIn:
    return _validated(HomeBlocksIn, payload,
                      "Неверная структура блока. Каждый блок должен содержать id, isVisible и order.")


async def visibility_validation(payload=Body(...)) -> BlockVisibilityIn:
    return _validated(BlockVisibilityIn, payload, "Параметр isVisible должен быть boolean")


async def order_validation(payload=Body(...)) -> BlockOrderIn:
    return _validated(BlockOrderIn, payload, "Параметр newOrder должен быть положительным числом")
