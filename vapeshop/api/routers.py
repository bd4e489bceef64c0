from fastapi import APIRouter
from vapeshop.api import version_prefix
from vapeshop.auth.routes import auth_router
from vapeshop.common.routes import home_router
from vapeshop.home_blocks.routes import home_blocks_admin_router, home_blocks_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(auth_router, prefix="/auth", tags=["auth"])
public_routers.include_router(home_blocks_router, prefix="/home-blocks", tags=["home-blocks"])
public_routers.include_router(home_router, tags=["home"])

#--------------------------------------------------------------------------------------------------------

admin_routers = APIRouter(prefix=f"{version_prefix}/admin")

admin_routers.include_router(home_blocks_admin_router, prefix="/home-blocks", tags=["home-blocks-admin"])
