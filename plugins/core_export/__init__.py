# plugins/core_export/__init__.py
import logging

from backend.core.contracts import Container, HookManager

from .api import export_router
from .service import GitExportService

logger = logging.getLogger(__name__)


def _create_export_service(container: Container) -> GitExportService:
    return GitExportService(
        container.resolve("asset_layout").root,
        task_manager=container.resolve("task_manager") if container.has("task_manager") else None,
    )


async def provide_router(routers: list) -> list:
    routers.append(export_router)
    logger.debug("Provided 'export_router' to the application.")
    return routers


def register_plugin(container: Container, hook_manager: HookManager):
    logger.info("--> 正在注册 [core_export] 插件...")
    container.register("export_service", _create_export_service, singleton=True)
    hook_manager.add_implementation(
        "collect_api_routers", provide_router, plugin_name="core_export"
    )
    logger.info("插件 [core_export] 注册成功。")
