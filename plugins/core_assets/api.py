# plugins/core_assets/api.py

from fastapi import APIRouter, Depends, Request, Response

from kiln.core.dependencies import Service
from .handler import AssetRequestHandler


def create_asset_router(mount: str) -> APIRouter:
    """资源路由挂载在配置的前缀下（默认 /assets），只接受 GET 和 HEAD。"""
    router = APIRouter(prefix=mount, tags=["Core-Assets"])

    @router.api_route("/{asset_path:path}", methods=["GET", "HEAD"], include_in_schema=False)
    async def serve_asset(
        asset_path: str,
        request: Request,
        handler: AssetRequestHandler = Depends(Service("asset_request_handler")),
    ) -> Response:
        result = await handler.handle(
            request.method,
            asset_path,
            if_none_match=request.headers.get("if-none-match"),
        )
        return Response(content=result.body, status_code=result.status_code, headers=result.headers)

    return router
