# plugins/core_diagnostics/auditor.py

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .contracts import AuditorInterface, Reportable

logger = logging.getLogger(__name__)


class Auditor(AuditorInterface):
    """从已注册的 Reportable 收集报告并合并成一个字典。"""

    def __init__(self, reporters: List[Reportable]):
        self._reporters = reporters
        self._static_cache: Optional[Dict[str, Any]] = None

    def set_reporters(self, reporters: List[Reportable]) -> None:
        self._reporters = reporters
        self._static_cache = None

    async def generate_full_report(self) -> Dict[str, Any]:
        if self._static_cache is None:
            self._static_cache = await self._collect(static=True)
        report = dict(self._static_cache)
        report.update(await self._collect(static=False))
        return report

    async def _collect(self, static: bool) -> Dict[str, Any]:
        selected = [r for r in self._reporters if r.is_static is static]
        if not selected:
            return {}

        results = await asyncio.gather(*(r.generate_report() for r in selected), return_exceptions=True)
        reports = {}
        for reporter, result in zip(selected, results):
            if isinstance(result, Exception):
                logger.error(f"Reporter '{reporter.report_key}' failed: {result}", exc_info=result)
                reports[reporter.report_key] = {"error": f"Failed to generate report: {result}"}
            else:
                reports[reporter.report_key] = result
        return reports
