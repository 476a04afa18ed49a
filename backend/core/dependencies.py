# backend/core/dependencies.py

from typing import Any

from fastapi import Request


class Service:
    """
    FastAPI 依赖：按名称从容器中解析服务。

        async def endpoint(store = Depends(Service("manifest_store"))): ...
    """
    def __init__(self, name: str):
        self.name = name

    def __call__(self, request: Request) -> Any:
        return request.app.state.container.resolve(self.name)

    def __repr__(self) -> str:
        return f"Service({self.name!r})"
