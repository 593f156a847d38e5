# conftest.py

import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Optional, Tuple

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from kiln.app import create_app
from plugins.core_assets.config import AssetServerConfig
from plugins.core_assets.pipeline import AssetPipeline


# --- 1. 测试数据 ---

def fake_scss_compile(data: bytes) -> bytes:
    """测试用的 scss 编译器：不依赖 libsass，输出可预测。"""
    return b"/* compiled */\n" + data.replace(b"$green", b"green")


def touch_later(path: Path, seconds: float = 10.0) -> None:
    """把文件的修改时间推到未来，保证严格大于已缓存的新鲜度时间。"""
    future = time.time() + seconds
    os.utime(path, (future, future))


@pytest.fixture
def asset_root(tmp_path: Path) -> Path:
    """一个填充了典型源文件的监视目录。"""
    root = tmp_path / "assets"
    root.mkdir()
    (root / "style.scss").write_text("body{color:$green}")
    (root / "a.js").write_text("var a = 1")
    (root / "b.js").write_text("var b = 2;")
    (root / "plain.css").write_text("p { margin: 0 }")
    (root / "css").mkdir()
    (root / "css" / "nested.scss").write_text("h1{color:red}")
    return root


# --- 2. 管线 Fixtures（单元 / 集成测试） ---

@pytest.fixture
def pipeline_factory(asset_root: Path) -> Callable[..., AssetPipeline]:
    """
    创建彼此独立的 AssetPipeline 实例。
    默认替换掉内置的 scss->css，使测试不需要安装 libsass。
    """
    def _factory(environment: str = "development", fake_scss: bool = True, **config_kwargs) -> AssetPipeline:
        config_kwargs.setdefault("watch_roots", [str(asset_root)])
        pipeline = AssetPipeline(config=AssetServerConfig(environment=environment, **config_kwargs))
        if fake_scss:
            pipeline.register_conversion("scss", "css", fake_scss_compile)
        return pipeline
    return _factory


@pytest.fixture
def pipeline(pipeline_factory) -> AssetPipeline:
    return pipeline_factory()


@pytest.fixture
def production_pipeline(pipeline_factory) -> AssetPipeline:
    return pipeline_factory(environment="production")


# --- 3. 端到端 Fixtures ---

@pytest.fixture
def asset_server(asset_root: Path, monkeypatch) -> Callable:
    """
    返回一个异步上下文管理器：用给定的环境变量启动完整的应用生命周期，
    产出 (AsyncClient, AssetPipeline)。每次调用都是一个全新的应用实例。
    """
    @asynccontextmanager
    async def _server(
        environment: str = "development",
        bundles_file: Optional[str] = None,
        mount: str = "/assets",
    ) -> AsyncIterator[Tuple[AsyncClient, AssetPipeline]]:
        monkeypatch.setenv("KILN_ENV", environment)
        monkeypatch.setenv("KILN_MOUNT", mount)
        monkeypatch.setenv("KILN_WATCH_ROOTS", str(asset_root))
        if bundles_file:
            monkeypatch.setenv("KILN_BUNDLES_FILE", bundles_file)
        else:
            monkeypatch.delenv("KILN_BUNDLES_FILE", raising=False)

        app = create_app()
        async with LifespanManager(app) as manager:
            pipeline: AssetPipeline = app.state.container.resolve("asset_pipeline")
            pipeline.register_conversion("scss", "css", fake_scss_compile)
            transport = ASGITransport(app=manager.app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                yield client, pipeline

    return _server


# --- 4. 辅助函数 Fixtures ---

@pytest.fixture
def touch() -> Callable[..., None]:
    return touch_later


@pytest.fixture
def compile_scss() -> Callable[[bytes], bytes]:
    return fake_scss_compile
