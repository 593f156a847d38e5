# plugins/core_diagnostics/reporters.py

from typing import Any, Dict, List

from .contracts import Reportable


class PluginReporter(Reportable):
    """列出已加载插件的名称、版本与加载优先级。"""

    def __init__(self, loaded_manifests: List[Dict[str, Any]]):
        self._manifests = loaded_manifests

    @property
    def report_key(self) -> str:
        return "plugins"

    async def generate_report(self) -> Any:
        return [
            {
                "name": manifest.get("name"),
                "version": manifest.get("version"),
                "priority": manifest.get("priority"),
            }
            for manifest in self._manifests
        ]
