from fastapi import APIRouter, Depends, HTTPException, status
from vapeshop.common.utils import success_response
from vapeshop.home_blocks.dependencies import (blocks_validation, get_home_block_repository, get_home_blocks_cache,
                                              order_validation, visibility_validation)
from vapeshop.home_blocks.models import BlockOrderIn, BlockVisibilityIn, HomeBlocksIn
from vapeshop.home_blocks.repository import HomeBlockRepository
from vapeshop.home_blocks.services import (HomeBlocksCache, get_blocks_config, reorder_block, replace_blocks_config,
                                           reset_blocks_config, toggle_block)
from vapeshop.schema.full_schema import UserRole
from vapeshop.user.dependencies import require_role

home_blocks_router = APIRouter()

home_blocks_admin_router = APIRouter(dependencies=[Depends(require_role(UserRole.ADMIN))])


@home_blocks_router.get("")
async def read_blocks(repo: HomeBlockRepository = Depends(get_home_block_repository),
                      cache: HomeBlocksCache = Depends(get_home_blocks_cache)):
    config = await get_blocks_config(repo, cache)
    return success_response(config, 200, message="Конфигурация блоков получена успешно")


@home_blocks_admin_router.put("")
async def update_blocks(payload: HomeBlocksIn = Depends(blocks_validation),
                        repo: HomeBlockRepository = Depends(get_home_block_repository),
                        cache: HomeBlocksCache = Depends(get_home_blocks_cache)):
    config = await replace_blocks_config(repo, cache, payload.blocks)
    return success_response(config, 200, message="Конфигурация блоков обновлена успешно")


@home_blocks_admin_router.patch("/{block_id}/toggle")
async def toggle(block_id: str, payload: BlockVisibilityIn = Depends(visibility_validation),
                 repo: HomeBlockRepository = Depends(get_home_block_repository),
                 cache: HomeBlocksCache = Depends(get_home_blocks_cache)):
    config = await toggle_block(repo, cache, block_id, payload.isVisible)
    if config is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f'Блок с id "{block_id}" не найден')
    state = "включен" if payload.isVisible else "отключен"
    return success_response(config, 200, message=f'Блок "{block_id}" {state}')


@home_blocks_admin_router.patch("/{block_id}/order")
async def reorder(block_id: str, payload: BlockOrderIn = Depends(order_validation),
                  repo: HomeBlockRepository = Depends(get_home_block_repository),
                  cache: HomeBlocksCache = Depends(get_home_blocks_cache)):
    config = await reorder_block(repo, cache, block_id, payload.newOrder)
    if config is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f'Блок с id "{block_id}" не найден')
    return success_response(config, 200, message=f'Порядок блока "{block_id}" обновлен')


@home_blocks_admin_router.post("/reset")
async def reset(repo: HomeBlockRepository = Depends(get_home_block_repository),
                cache: HomeBlocksCache = Depends(get_home_blocks_cache)):
    config = await reset_blocks_config(repo, cache)
    return success_response(config, 200, message="Конфигурация сброшена к значениям по умолчанию")
