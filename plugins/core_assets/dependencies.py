# plugins/core_assets/dependencies.py

from fastapi import HTTPException, Request

from .contracts import AssetError
from .multipart import MultipartForm


async def get_multipart_form(request: Request) -> MultipartForm:
    """FastAPI 依赖：读取原始请求体并用本插件的解码器拆分为 MultipartForm。"""
    body = await request.body()
    try:
        return MultipartForm.from_body(body, request.headers.get("content-type"))
    except AssetError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
