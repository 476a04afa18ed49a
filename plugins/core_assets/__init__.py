# plugins/core_assets/__init__.py
import asyncio
import logging

from backend.core.contracts import Container, HookManager

from .api import assets_router, files_router
from .deletion import DeletionCoordinator
from .ingestion import IngestionPipeline
from .layout import AssetLayout
from .store import ManifestStore

logger = logging.getLogger(__name__)


# --- 服务工厂 ---

def _create_asset_layout() -> AssetLayout:
    layout = AssetLayout.from_env()
    logger.info(f"Asset root: {layout.root} (manifest: {layout.manifest_path})")
    return layout


def _create_manifest_store(container: Container) -> ManifestStore:
    return ManifestStore(container.resolve("asset_layout"))


def _create_ingestion_pipeline(container: Container) -> IngestionPipeline:
    return IngestionPipeline(
        container.resolve("asset_layout"),
        container.resolve("manifest_store"),
        task_manager=container.resolve("task_manager") if container.has("task_manager") else None,
    )


def _create_deletion_coordinator(container: Container) -> DeletionCoordinator:
    return DeletionCoordinator(
        container.resolve("asset_layout"),
        container.resolve("manifest_store"),
        task_manager=container.resolve("task_manager") if container.has("task_manager") else None,
    )


# --- 钩子实现 ---

async def provide_routers(routers: list) -> list:
    routers.extend([assets_router, files_router])
    logger.debug("Provided 'assets_router' and 'files_router' to the application.")
    return routers


async def initialize_asset_tree(container: Container):
    """钩子实现: 创建预览/默认模型目录并加载已有清单。"""
    store: ManifestStore = container.resolve("manifest_store")
    await asyncio.to_thread(store.ensure_layout)
    manifest = await store.load()
    logger.info(f"Loaded manifest with {len(manifest.assets)} assets.")


def register_plugin(container: Container, hook_manager: HookManager):
    logger.info("--> 正在注册 [core_assets] 插件...")
    container.register("asset_layout", _create_asset_layout, singleton=True)
    container.register("manifest_store", _create_manifest_store, singleton=True)
    container.register("ingestion_pipeline", _create_ingestion_pipeline, singleton=True)
    container.register("deletion_coordinator", _create_deletion_coordinator, singleton=True)
    logger.debug("Registered 'asset_layout', 'manifest_store', 'ingestion_pipeline', 'deletion_coordinator'.")

    hook_manager.add_implementation(
        "collect_api_routers", provide_routers, plugin_name="core_assets"
    )
    hook_manager.add_implementation(
        "services_post_register", initialize_asset_tree, priority=50, plugin_name="core_assets"
    )
    logger.info("插件 [core_assets] 注册成功。")
