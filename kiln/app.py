# kiln/app.py
import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import APIRouter, FastAPI

from kiln.container import Container
from kiln.core.hooks import HookManager
from kiln.core.loader import PluginLoader

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- 启动阶段 ---
    container = Container()
    hook_manager = HookManager(container)

    # 1. 注册平台核心服务
    container.register("container", lambda: container)
    container.register("hook_manager", lambda: hook_manager)

    # 2. 加载插件（同步注册服务与钩子）
    loader = PluginLoader(container, hook_manager)
    loader.load_plugins()

    app.state.container = container
    hook_manager.add_shared_context("app", app)

    # 3. 服务初始化：监视目录、启动时 bundle 等。这里的错误必须让启动失败
    await hook_manager.trigger_strict('services_post_register')

    # 4. 收集并装配所有插件提供的路由
    routers: List[APIRouter] = await hook_manager.filter("collect_api_routers", [])
    for router in routers:
        app.include_router(router)
        logger.debug(f"Included router: prefix='{router.prefix}', tags={router.tags}")
    if not routers:
        logger.warning("No API routers were collected from plugins.")

    await hook_manager.trigger('app_startup_complete')
    logger.info("--- Kiln asset server ready ---")
    yield
    # --- 关闭阶段 ---
    logger.info("--- Kiln asset server shutting down ---")
    await hook_manager.trigger('app_shutdown')


def create_app() -> FastAPI:
    """应用工厂函数。每次调用都会得到一个拥有独立容器与缓存的新应用。"""
    return FastAPI(
        title="Kiln Asset Server",
        version="0.3.0",
        lifespan=lifespan
    )
