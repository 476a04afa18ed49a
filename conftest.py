# conftest.py

import pytest
from contextlib import AsyncExitStack
from pathlib import Path
from typing import AsyncGenerator, Callable, List, Optional

from httpx import AsyncClient, ASGITransport
from asgi_lifespan import LifespanManager

from backend.app import create_app
from plugins.core_assets.layout import AssetLayout
from plugins.core_assets.store import ManifestStore

TEST_PREVIEW_BASE_URL = "https://cdn.example.test/assets/"


# --- 1. 资产树 Fixtures ---

@pytest.fixture
def asset_root(tmp_path: Path) -> Path:
    """每个测试独享的沙箱根目录。"""
    root = tmp_path / "assets"
    root.mkdir()
    return root


@pytest.fixture
def layout(asset_root: Path) -> AssetLayout:
    return AssetLayout.for_root(asset_root, preview_base_url=TEST_PREVIEW_BASE_URL)


@pytest.fixture
def store(layout: AssetLayout) -> ManifestStore:
    return ManifestStore(layout)


@pytest.fixture
def write_file(asset_root: Path) -> Callable[..., Path]:
    """在沙箱中写入一个文件（自动创建父目录），返回绝对路径。"""
    def _write(relative: str, data: bytes = b"\x89PNG-test") -> Path:
        path = asset_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path
    return _write


# --- 2. 应用与客户端 Fixtures ---

@pytest.fixture
async def async_client(asset_root: Path, monkeypatch) -> AsyncGenerator[Callable, None]:
    """
    客户端工厂：`await async_client(["core_logging", "core_assets"])` 启动一个
    只加载指定插件的应用（完整 lifespan），资产根目录指向本测试的 tmp 目录。
    不传参数时加载全部插件。
    """
    monkeypatch.setenv("HAZE_ASSET_ROOT", str(asset_root))
    monkeypatch.delenv("HAZE_MANIFEST_PATH", raising=False)
    monkeypatch.setenv("HAZE_PREVIEW_BASE_URL", TEST_PREVIEW_BASE_URL)

    async with AsyncExitStack() as stack:
        async def _factory(plugins: Optional[List[str]] = None) -> AsyncClient:
            app = create_app(enabled_plugins=plugins)
            manager = await stack.enter_async_context(LifespanManager(app))
            transport = ASGITransport(app=manager.app)
            return await stack.enter_async_context(
                AsyncClient(transport=transport, base_url="http://test")
            )
        yield _factory
