# plugins/core_diagnostics/__init__.py
import logging
from typing import List

from fastapi import APIRouter

from kiln.core.contracts import Container, HookManager
from .contracts import AuditorInterface, Reportable
from .auditor import Auditor
from .reporters import PluginReporter

logger = logging.getLogger(__name__)


def _create_auditor() -> Auditor:
    return Auditor([])


async def populate_auditor(container: Container, hook_manager: HookManager):
    """钩子实现：从所有插件收集报告器，填充到审计员中。"""
    auditor: AuditorInterface = container.resolve("auditor")
    reporters: List[Reportable] = await hook_manager.filter("collect_reporters", [])
    auditor.set_reporters(reporters)
    logger.info(f"Auditor populated with {len(reporters)} reporter(s).")


async def provide_plugin_reporter(reporters: List[Reportable], container: Container) -> List[Reportable]:
    reporters.append(PluginReporter(loaded_manifests=container.resolve("loaded_plugins_manifests")))
    return reporters


async def provide_api_routers(routers: List[APIRouter]) -> List[APIRouter]:
    from .api import diagnostics_router
    routers.append(diagnostics_router)
    return routers


def register_plugin(container: Container, hook_manager: HookManager):
    logger.info("--> 正在注册 [core_diagnostics] 插件...")

    container.register("auditor", _create_auditor, singleton=True)

    # 必须晚于其他插件的初始化钩子，它们的报告器才能拿到已就绪的服务
    hook_manager.add_implementation(
        "services_post_register", populate_auditor, priority=90, plugin_name="core_diagnostics"
    )
    hook_manager.add_implementation(
        "collect_reporters", provide_plugin_reporter, plugin_name="core_diagnostics"
    )
    hook_manager.add_implementation(
        "collect_api_routers", provide_api_routers, plugin_name="core_diagnostics"
    )
    logger.info("插件 [core_diagnostics] 注册成功。")
