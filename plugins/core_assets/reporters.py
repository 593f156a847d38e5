# plugins/core_assets/reporters.py

from typing import Any

from plugins.core_diagnostics.contracts import Reportable
from .pipeline import AssetPipeline


class AssetPipelineReporter(Reportable):
    """向诊断报告提供资源管线的实时状态（缓存内容会随请求变化，所以是动态报告）。"""

    def __init__(self, pipeline: AssetPipeline):
        self._pipeline = pipeline

    @property
    def report_key(self) -> str:
        return "assets"

    @property
    def is_static(self) -> bool:
        return False

    async def generate_report(self) -> Any:
        return self._pipeline.describe()
