import logging

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response

from bson import json_util

from mongomigrate.analyzer import Analyzer
from mongomigrate.exceptions import MigrationToolError

from ..dependencies import get_connection_factory
from ..schemas import AnalyzeRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analyze"])


def _analyze(connection_factory, body: AnalyzeRequest):
    with connection_factory() as connections:
        client = connections.open(body.source, 'source')
        connections.source_client = client
        return Analyzer().analyze_databases(client, body.databases)


@router.post("/analyze")
async def analyze(body: AnalyzeRequest, connection_factory=Depends(get_connection_factory)):
    try:
        databases = await run_in_threadpool(_analyze, connection_factory, body)
    except MigrationToolError as e:
        logger.error(f"Error analyzing database: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Error analyzing database", "error": str(e)},
        )
    # index definitions may hold BSON values
    content = json_util.dumps({"databases": [db.to_document() for db in databases]})
    return Response(content=content, media_type="application/json")
