from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..dependencies import get_runner, get_store
from ..runner import MigrationRunner
from ..schemas import MigrationRequest
from ..store import MigrationStore

router = APIRouter(prefix="/migrate", tags=["migrate"])

NOT_FOUND = {"success": False, "message": "Migration not found"}


@router.post("/start")
async def start_migration(body: MigrationRequest, runner: MigrationRunner = Depends(get_runner)):
    migration_id = runner.start(body.source, body.target, body.options)
    return {"success": True, "migrationId": migration_id, "message": "Migration started"}


@router.get("/status/{migration_id}")
async def migration_status(migration_id: str, store: MigrationStore = Depends(get_store)):
    record = store.get(migration_id)
    if record is None:
        return JSONResponse(status_code=404, content=NOT_FOUND)
    return record.status_payload()


@router.post("/stop/{migration_id}")
async def stop_migration(migration_id: str, runner: MigrationRunner = Depends(get_runner)):
    if not runner.stop(migration_id):
        return JSONResponse(status_code=404, content=NOT_FOUND)
    return {"success": True, "message": "Migration stop requested"}


@router.get("")
async def list_migrations(store: MigrationStore = Depends(get_store)):
    return {"migrations": [record.status_payload() for record in store.list()]}
