from fastapi import Depends, Request
from typing_extensions import Annotated

from tasklist.db.connection import ConnectionCache


def get_connection_cache(request: Request) -> ConnectionCache:
    return request.app.state.connection_cache


# Dependency for getting the shared connection handle
async def get_db(cache: ConnectionCache = Depends(get_connection_cache)):
    return await cache.get_connection()


ConnectionCacheDep = Annotated[ConnectionCache, Depends(get_connection_cache)]
DbDep = Annotated[object, Depends(get_db)]
