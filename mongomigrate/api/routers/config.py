import json
import logging
from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..dependencies import get_config_path
from ..schemas import MigrationRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/config", tags=["config"])


@router.post("")
async def save_config(body: MigrationRequest, config_path: Path = Depends(get_config_path)):
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(body.to_json_dict(), indent=2), encoding="utf-8")
    except OSError as e:
        logger.error(f"Error saving configuration: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Error saving configuration", "error": str(e)},
        )
    return {"success": True, "message": "Configuration saved"}


@router.get("")
async def load_config(config_path: Path = Depends(get_config_path)):
    if not config_path.exists():
        return JSONResponse(status_code=404, content={"success": False, "message": "Configuration not found"})
    try:
        return json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error(f"Error loading configuration: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Error loading configuration", "error": str(e)},
        )
