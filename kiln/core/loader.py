# kiln/core/loader.py

import importlib
import importlib.resources
import json
import logging
from typing import Any, Dict, List

from kiln.core.contracts import Container, HookManager, PluginRegisterFunc

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 100


class PluginLoader:
    """发现、排序并注册 `plugins` 包下的所有插件。"""

    def __init__(self, container: Container, hook_manager: HookManager, package: str = "plugins"):
        self._container = container
        self._hook_manager = hook_manager
        self._package = package

    def load_plugins(self) -> List[Dict[str, Any]]:
        discovered = self._discover_plugins()
        if not discovered:
            logger.warning(f"No plugins discovered in package '{self._package}'.")
            return []

        ordered = sorted(
            discovered,
            key=lambda p: (p['manifest'].get('priority', DEFAULT_PRIORITY), p['name'])
        )
        logger.debug("Plugin load order: " + ", ".join(p['name'] for p in ordered))

        manifests = [p['manifest'] for p in ordered]
        # 诊断插件需要知道加载了哪些插件
        self._container.register("loaded_plugins_manifests", lambda: manifests)

        self._register_plugins(ordered)
        logger.info(f"{len(ordered)} plugin(s) loaded and registered.")
        return manifests

    def _discover_plugins(self) -> List[Dict[str, Any]]:
        """扫描插件包，只接受带有可解析 manifest.json 的子包。"""
        discovered = []
        try:
            root = importlib.resources.files(self._package)
        except ModuleNotFoundError:
            return discovered

        for plugin_path in root.iterdir():
            if not plugin_path.is_dir() or plugin_path.name.startswith(('__', '.')):
                continue
            manifest_path = plugin_path / "manifest.json"
            if not manifest_path.is_file():
                continue
            try:
                manifest = json.loads(manifest_path.read_text(encoding='utf-8'))
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping plugin '{plugin_path.name}': invalid manifest.json ({e})")
                continue
            discovered.append({
                "name": manifest.get('name', plugin_path.name),
                "manifest": manifest,
                "import_path": f"{self._package}.{plugin_path.name}",
            })
        return discovered

    def _register_plugins(self, plugins: List[Dict[str, Any]]) -> None:
        for plugin_info in plugins:
            name = plugin_info['name']
            import_path = plugin_info['import_path']
            try:
                module = importlib.import_module(import_path)
                register_func: PluginRegisterFunc = getattr(module, "register_plugin")
                register_func(self._container, self._hook_manager)
            except Exception as e:
                # 插件之间有依赖关系，任何一个失败都不能继续启动
                logger.critical(f"Failed to load plugin '{name}' ({import_path})", exc_info=True)
                raise RuntimeError(f"无法加载插件 {name}") from e
