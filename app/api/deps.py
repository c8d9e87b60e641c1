from typing import Annotated

from fastapi import Depends, Request

from app.core.database import DatabasePools
from app.core.gateway import QueryGateway


# The app lifespan builds these once and parks them on app.state
def get_gateway(request: Request) -> QueryGateway:
    return request.app.state.gateway


def get_pools(request: Request) -> DatabasePools:
    return request.app.state.pools


gateway_dep = Annotated[QueryGateway, Depends(get_gateway)]
pools_dep = Annotated[DatabasePools, Depends(get_pools)]
