# backend/app.py
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware

from backend.container import Container
from backend.core.hooks import HookManager
from backend.core.loader import PluginLoader
from backend.core.tasks import BackgroundTaskManager

logger = logging.getLogger(__name__)


def _build_lifespan(enabled_plugins: Optional[List[str]]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # --- 启动阶段 ---
        container = Container()
        hook_manager = HookManager(container)

        # 1. 注册平台核心服务
        container.register("container", lambda: container)
        container.register("hook_manager", lambda: hook_manager)

        # 单消费者队列：所有改动资产树的操作都在这里串行执行
        task_manager = BackgroundTaskManager(max_workers=1)
        container.register("task_manager", lambda: task_manager)
        hook_manager.add_shared_context("task_manager", task_manager)

        # 2. 加载插件（同步注册）
        PluginLoader(container, hook_manager).load_plugins(enabled=enabled_plugins)
        logger.info("--- FastAPI 应用组装 ---")

        # 3. 将核心服务附加到 app.state
        app.state.container = container
        hook_manager.add_shared_context("app", app)

        # 4. 异步初始化（目录创建、清单加载）
        await hook_manager.trigger('services_post_register')
        task_manager.start()

        # 5. 收集并装配 API 路由
        routers: List[APIRouter] = await hook_manager.filter("collect_api_routers", [])
        if routers:
            logger.info(f"已收集到 {len(routers)} 个路由。正在添加到应用中...")
            for router in routers:
                app.include_router(router)
                logger.debug(f"已添加路由: prefix='{router.prefix}', tags={router.tags}")
        else:
            logger.warning("未从插件中收集到任何 API 路由。")

        await hook_manager.trigger('app_startup_complete')
        logger.info("--- Haze Store Manager 已就绪 ---")
        yield
        # --- 关闭阶段 ---
        logger.info("--- Haze Store Manager 正在关闭 ---")
        await task_manager.stop()
        await hook_manager.trigger('app_shutdown')

    return lifespan


def create_app(enabled_plugins: Optional[List[str]] = None) -> FastAPI:
    """
    应用工厂函数。
    `enabled_plugins` 为 None 时加载全部插件；测试可以只启用其中一部分。
    """
    app = FastAPI(
        title="Haze Store Manager",
        description="Keeps the asset manifest in sync with the skin/model/special asset tree.",
        version="1.0.0",
        lifespan=_build_lifespan(enabled_plugins)
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.get("/", tags=["System"])
    async def read_root():
        return {"message": "Haze Store Manager is running."}

    return app
