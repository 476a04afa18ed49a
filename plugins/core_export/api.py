# plugins/core_export/api.py

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from backend.core.dependencies import Service

from .service import GitExportService

logger = logging.getLogger(__name__)

export_router = APIRouter(
    prefix="/api",
    tags=["Core-Export"]
)


@export_router.post("/git-push", summary="Commit and push the asset tree")
async def git_push(service: GitExportService = Depends(Service("export_service"))) -> Dict[str, Any]:
    """
    git 命令本身的失败以 `{success: false, error}` 返回 (HTTP 200)。
    只有服务内部的意外错误才会返回 500。
    """
    try:
        result = await service.export()
    except Exception as e:
        logger.error(f"Git export failed unexpectedly: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    return result.model_dump(exclude_none=True)
