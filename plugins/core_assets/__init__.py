# plugins/core_assets/__init__.py
import logging
from typing import List

from fastapi import APIRouter

from kiln.core.contracts import Container, HookManager
from .config import AssetServerConfig, load_bundle_definitions
from .handler import AssetRequestHandler
from .pipeline import AssetPipeline
from .reporters import AssetPipelineReporter

logger = logging.getLogger(__name__)


# --- 服务工厂 ---

def _create_config() -> AssetServerConfig:
    return AssetServerConfig.from_env()


def _create_pipeline(container: Container) -> AssetPipeline:
    return AssetPipeline(config=container.resolve("asset_config"))


def _create_request_handler(container: Container) -> AssetRequestHandler:
    return AssetRequestHandler(container.resolve("asset_pipeline"))


# --- 钩子实现 ---

async def initialize_pipeline(container: Container, hook_manager: HookManager):
    """
    在所有服务注册后创建资源管线（同时注册配置中的监视目录），并创建启动时声明的 bundle。
    这里的任何错误都会让应用启动失败。
    """
    pipeline: AssetPipeline = container.resolve("asset_pipeline")
    hook_manager.add_shared_context("pipeline", pipeline)

    config = pipeline.config
    logger.info(
        f"Asset pipeline ready: env={config.environment}, mount='{config.mount}', "
        f"{len(pipeline.watcher.roots)} watch root(s)."
    )
    if config.bundles_file:
        for definition in load_bundle_definitions(config.bundles_file):
            await pipeline.create_bundle(definition.name, definition.type, definition.members)


async def provide_router(routers: List[APIRouter], container: Container) -> List[APIRouter]:
    from .api import create_asset_router
    config: AssetServerConfig = container.resolve("asset_config")
    routers.append(create_asset_router(config.mount))
    logger.debug(f"Provided asset router mounted at '{config.mount}'.")
    return routers


async def provide_reporter(reporters: list, container: Container) -> list:
    reporters.append(AssetPipelineReporter(container.resolve("asset_pipeline")))
    return reporters


def register_plugin(container: Container, hook_manager: HookManager):
    logger.info("--> 正在注册 [core_assets] 插件...")

    container.register("asset_config", _create_config, singleton=True)
    container.register("asset_pipeline", _create_pipeline, singleton=True)
    container.register("asset_request_handler", _create_request_handler, singleton=True)

    hook_manager.add_implementation(
        "services_post_register", initialize_pipeline, priority=50, plugin_name="core_assets"
    )
    hook_manager.add_implementation(
        "collect_api_routers", provide_router, plugin_name="core_assets"
    )
    hook_manager.add_implementation(
        "collect_reporters", provide_reporter, plugin_name="core_assets"
    )
    logger.info("插件 [core_assets] 注册成功。")
