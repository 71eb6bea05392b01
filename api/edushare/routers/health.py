from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import os
import platform
import psutil
from datetime import datetime
import logging

from ..config.settings import DATA_DIR, ENV, API_VERSION, S3_CONFIGURED
from ..core.dependencies import StoreHandle, get_store
from ..core.errors import StoreError
from ..utils.performance import performance_monitor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check(store: StoreHandle = Depends(get_store)):
    """Check system health"""
    try:
        await store.documents.ping()
        database_status = {"reachable": True}
    except StoreError as e:
        logger.error(f"Health check could not reach the document store: {e}")
        database_status = {"reachable": False, "code": e.code, "error": str(e)}

    # Get memory info
    memory = psutil.virtual_memory()
    memory_info = {
        "total": f"{memory.total / (1024**3):.2f} GB",
        "available": f"{memory.available / (1024**3):.2f} GB",
        "used": f"{memory.used / (1024**3):.2f} GB",
        "percent": f"{memory.percent}%"
    }

    body = {
        "status": "healthy" if database_status["reachable"] else "degraded",
        "timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "environment": ENV,
        "version": API_VERSION,
        "system": {
            "platform": platform.system(),
            "python_version": platform.python_version()
        },
        "memory": memory_info,
        "storage": {
            "database": database_status,
            "files": "s3" if S3_CONFIGURED else "local",
            "data_dir_writable": os.access(DATA_DIR, os.W_OK)
        },
        "performance": performance_monitor.get_all_stats()
    }

    if not database_status["reachable"]:
        return JSONResponse(status_code=503, content=body)
    return body
