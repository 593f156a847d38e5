# plugins/core_diagnostics/api.py

from fastapi import APIRouter, Depends

from kiln.core.dependencies import Service
from .contracts import AuditorInterface

diagnostics_router = APIRouter(
    prefix="/api/system",
    tags=["System", "Diagnostics"]
)


@diagnostics_router.get("/report", summary="Get full system diagnostics report")
async def get_system_report(
    auditor: AuditorInterface = Depends(Service("auditor"))
):
    """
    Returns the aggregated diagnostics report: loaded plugins, and the live state
    of the asset pipeline (watch roots, conversions, cached assets, bundles).
    """
    return await auditor.generate_full_report()
