from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from mongomigrate.base import ConnectionConfig
from mongomigrate.exceptions import MongoConnectionError

from ..dependencies import get_connection_factory

router = APIRouter(prefix="/connection", tags=["connection"])


def _ping(connection_factory, config: ConnectionConfig) -> None:
    with connection_factory() as connections:
        connections.source_client = connections.open(config, 'source')


@router.post("/test")
async def test_connection(config: ConnectionConfig, connection_factory=Depends(get_connection_factory)):
    try:
        await run_in_threadpool(_ping, connection_factory, config)
    except MongoConnectionError as e:
        return {"success": False, "message": str(e)}
    return {"success": True, "message": "Connection successful"}
