# kiln/core/dependencies.py

from typing import Any, Callable

from fastapi import Request


def Service(name: str) -> Callable[[Request], Any]:
    """
    FastAPI 依赖工厂：按名称从应用容器中解析服务。

        pipeline: AssetPipeline = Depends(Service("asset_pipeline"))
    """
    def _resolve(request: Request) -> Any:
        return request.app.state.container.resolve(name)
    return _resolve
