# plugins/core_assets/api.py

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse

from backend.core.contracts import BackgroundTaskManager
from backend.core.dependencies import Service
from backend.core.tasks import run_serialized

from .contracts import AssetError, AssetNotFoundError
from .deletion import DeletionCoordinator
from .dependencies import get_multipart_form
from .ingestion import IngestionPipeline
from .layout import AssetLayout
from .multipart import MultipartForm
from .sandbox import PathSandbox, content_type_for
from .store import ManifestStore

logger = logging.getLogger(__name__)

FILE_CACHE_CONTROL = "max-age=300"


async def _guarded(action: str, call: Callable[[], Awaitable[Any]]) -> Any:
    """把领域异常翻译成 HTTPException；未预料的异常记录完整堆栈后按 500 返回。"""
    try:
        return await call()
    except AssetError as e:
        logger.info(f"{action} rejected ({e.status_code}): {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"{action} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# --- Router 1: 清单与上传 API ---
assets_router = APIRouter(
    prefix="/api",
    tags=["Core-Assets"]
)


@assets_router.get("/assets", summary="Get the persisted manifest")
async def get_manifest(store: ManifestStore = Depends(Service("manifest_store"))) -> Dict[str, Any]:
    manifest = await _guarded("Reading manifest", store.load)
    return manifest.to_wire()


@assets_router.get("/scan", summary="Scan the asset folders without persisting")
async def scan_assets(store: ManifestStore = Depends(Service("manifest_store"))) -> Dict[str, Any]:
    assets = await _guarded("Scan", store.scan)
    return {
        "count": len(assets),
        "items": [a.model_dump(mode="json", exclude_none=True) for a in assets],
    }


@assets_router.post("/regenerate", summary="Rescan and persist the manifest")
async def regenerate_manifest(
    store: ManifestStore = Depends(Service("manifest_store")),
    task_manager: BackgroundTaskManager = Depends(Service("task_manager"))
) -> Dict[str, Any]:
    manifest = await _guarded("Regeneration", lambda: run_serialized(task_manager, store.regenerate))
    return {"success": True, "count": len(manifest.assets)}


@assets_router.post("/upload", summary="Upload a file into any folder (legacy)")
async def upload_raw(
    form: MultipartForm = Depends(get_multipart_form),
    pipeline: IngestionPipeline = Depends(Service("ingestion_pipeline"))
) -> Dict[str, Any]:
    result = await _guarded("Upload", lambda: pipeline.upload_raw(form))
    return {"success": True, **result.model_dump(exclude_none=True)}


@assets_router.post("/upload-skin", summary="Upload a weapon skin")
async def upload_skin(
    form: MultipartForm = Depends(get_multipart_form),
    pipeline: IngestionPipeline = Depends(Service("ingestion_pipeline"))
) -> Dict[str, Any]:
    result = await _guarded("Skin upload", lambda: pipeline.upload_skin(form))
    return {"success": True, **result.model_dump(exclude_none=True)}


@assets_router.post("/upload-model", summary="Upload a weapon model with optional texture and preview")
async def upload_model(
    form: MultipartForm = Depends(get_multipart_form),
    pipeline: IngestionPipeline = Depends(Service("ingestion_pipeline"))
) -> Dict[str, Any]:
    result = await _guarded("Model upload", lambda: pipeline.upload_model(form))
    return {"success": True, **result.model_dump(exclude_none=True)}


@assets_router.post("/upload-special", summary="Upload a special (all-weapon) skin")
async def upload_special(
    form: MultipartForm = Depends(get_multipart_form),
    pipeline: IngestionPipeline = Depends(Service("ingestion_pipeline"))
) -> Dict[str, Any]:
    result = await _guarded("Special upload", lambda: pipeline.upload_special(form))
    return {"success": True, **result.model_dump(exclude_none=True)}


@assets_router.post("/save-preview", summary="Store a preview image for an existing asset")
async def save_preview(
    form: MultipartForm = Depends(get_multipart_form),
    pipeline: IngestionPipeline = Depends(Service("ingestion_pipeline"))
) -> Dict[str, Any]:
    result = await _guarded("Preview save", lambda: pipeline.save_preview(form))
    return {"success": True, "preview": result.preview}


@assets_router.delete("/asset", summary="Delete an asset and its companion files")
async def delete_asset(
    file: Optional[str] = Query(default=None),
    coordinator: DeletionCoordinator = Depends(Service("deletion_coordinator"))
) -> Dict[str, Any]:
    result = await _guarded("Delete", lambda: coordinator.delete(file))
    return {"success": True, "removed": result.removed}


# --- Router 2: 沙箱内的只读文件服务 ---
files_router = APIRouter(
    tags=["Core-Assets", "Files"]
)


@files_router.get("/file/{file_path:path}", summary="Serve a file from the asset root")
async def serve_file(
    file_path: str,
    layout: AssetLayout = Depends(Service("asset_layout"))
):
    """
    只读地返回资产根目录下的任意文件。
    越界路径返回 403（在触碰文件系统之前就被拒绝），不存在的文件返回 404。
    """
    async def locate():
        sandbox = PathSandbox(layout.root)
        sandbox.normalize(file_path)
        target = await asyncio.to_thread(sandbox.resolve, file_path)
        if not await asyncio.to_thread(target.is_file):
            raise AssetNotFoundError("File not found")
        return target

    target = await _guarded(f"Serving '{file_path}'", locate)
    return FileResponse(
        target,
        media_type=content_type_for(target),
        headers={"Cache-Control": FILE_CACHE_CONTROL},
    )
