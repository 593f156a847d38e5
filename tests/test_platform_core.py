# tests/test_platform_core.py

import asyncio
import threading
from unittest.mock import MagicMock

import pytest

from kiln.container import Container
from kiln.core.hooks import HookManager
from kiln.core.loader import PluginLoader


class TestContainer:
    """对 DI 容器的单元测试。"""

    def test_register_and_resolve_singleton(self):
        container = Container()
        mock_factory = MagicMock(return_value="service_instance")
        container.register("my_service", lambda: mock_factory())

        instance1 = container.resolve("my_service")
        instance2 = container.resolve("my_service")

        assert instance1 == "service_instance"
        assert instance1 is instance2
        mock_factory.assert_called_once()  # 工厂只应被调用一次

    def test_register_and_resolve_transient(self):
        container = Container()
        mock_factory = MagicMock(side_effect=["instance1", "instance2"])
        container.register("my_service", lambda: mock_factory(), singleton=False)

        assert container.resolve("my_service") == "instance1"
        assert container.resolve("my_service") == "instance2"
        assert mock_factory.call_count == 2

    def test_resolve_nonexistent_service(self):
        container = Container()
        with pytest.raises(ValueError, match="Service 'nonexistent' not found"):
            container.resolve("nonexistent")
        assert not container.has("nonexistent")

    def test_factory_with_container_dependency(self):
        container = Container()

        def dependent_factory(c: Container):
            return f"dependent_on_{c.resolve('base_service')}"

        container.register("base_service", lambda: "base_instance")
        container.register("dependent_service", dependent_factory)

        assert container.resolve("dependent_service") == "dependent_on_base_instance"

    def test_circular_dependency_is_detected(self):
        container = Container()
        container.register("a", lambda c: c.resolve("b"))
        container.register("b", lambda c: c.resolve("a"))

        with pytest.raises(RuntimeError, match="Circular dependency"):
            container.resolve("a")

    def test_overwrite_drops_cached_singleton(self):
        container = Container()
        container.register("service", lambda: "old")
        assert container.resolve("service") == "old"

        container.register("service", lambda: "new")
        assert container.resolve("service") == "new"

    def test_singleton_is_created_once_across_threads(self):
        container = Container()
        created = []

        def factory():
            created.append(object())
            return created[-1]

        container.register("shared", factory)
        results = []
        threads = [threading.Thread(target=lambda: results.append(container.resolve("shared"))) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(created) == 1
        assert all(r is created[0] for r in results)


@pytest.mark.asyncio
class TestHookManager:
    """对事件总线 HookManager 的单元测试。"""

    async def test_filter_hook(self):
        """测试 filter 钩子的链式处理和优先级。"""
        hook_manager = HookManager()

        async def low_priority_filter(data: list, **kwargs):
            data.append("low")
            return data

        async def high_priority_filter(data: list, **kwargs):
            data.append("high")
            return data

        # 以错误的优先级顺序注册
        hook_manager.add_implementation("test_filter", low_priority_filter, priority=20)
        hook_manager.add_implementation("test_filter", high_priority_filter, priority=10)

        result = await hook_manager.filter("test_filter", ["start"])
        assert result == ["start", "high", "low"]

    async def test_trigger_hook(self):
        """测试 trigger 钩子的并发执行。"""
        hook_manager = HookManager()
        call_log = []

        async def hook1(**kwargs):
            await asyncio.sleep(0.02)
            call_log.append("hook1")

        async def hook2(**kwargs):
            call_log.append("hook2")

        hook_manager.add_implementation("test_trigger", hook1)
        hook_manager.add_implementation("test_trigger", hook2)

        await hook_manager.trigger("test_trigger")
        assert sorted(call_log) == ["hook1", "hook2"]

    async def test_trigger_logs_errors_but_strict_raises(self):
        hook_manager = HookManager()
        ran_after_failure = []

        async def failing():
            raise ValueError("boom")

        async def later():
            ran_after_failure.append(True)

        hook_manager.add_implementation("startup", failing, priority=1)
        hook_manager.add_implementation("startup", later, priority=2)

        await hook_manager.trigger("startup")
        assert ran_after_failure == [True]

        with pytest.raises(ValueError, match="boom"):
            await hook_manager.trigger_strict("startup")
        # 严格模式按优先级顺序执行，失败后不再继续
        assert ran_after_failure == [True]

    async def test_context_is_injected_by_parameter_name(self):
        container = Container()
        hook_manager = HookManager(container)
        hook_manager.add_shared_context("pipeline", "the-pipeline")
        seen = {}

        async def needs_context(container, pipeline, missing=None):
            seen.update(container=container, pipeline=pipeline, missing=missing)

        hook_manager.add_implementation("ctx", needs_context)
        await hook_manager.trigger_strict("ctx")

        assert seen == {"container": container, "pipeline": "the-pipeline", "missing": None}

    async def test_decide_prefers_highest_priority(self):
        hook_manager = HookManager()

        async def low():
            return "low"

        async def high():
            return "high"

        async def abstain():
            return None

        hook_manager.add_implementation("choose", low, priority=1)
        hook_manager.add_implementation("choose", high, priority=5)
        hook_manager.add_implementation("choose", abstain, priority=9)

        assert await hook_manager.decide("choose") == "high"

    async def test_sync_implementation_is_rejected(self):
        hook_manager = HookManager()
        with pytest.raises(TypeError):
            hook_manager.add_implementation("sync", lambda: None)

    async def test_hooks_with_no_implementations(self):
        """测试在没有实现的情况下调用钩子不会出错。"""
        hook_manager = HookManager()

        assert await hook_manager.filter("nonexistent_filter", "data") == "data"
        assert await hook_manager.decide("nonexistent_decide") is None
        await hook_manager.trigger("nonexistent_trigger")
        await hook_manager.trigger_strict("nonexistent_trigger")


class TestPluginLoader:

    def test_loads_plugins_in_priority_order(self):
        container = Container()
        hook_manager = HookManager(container)

        manifests = PluginLoader(container, hook_manager).load_plugins()

        assert [m["name"] for m in manifests] == ["core_logging", "core_diagnostics", "core_assets"]
        assert container.resolve("loaded_plugins_manifests") == manifests
        assert container.has("asset_pipeline")
        assert container.has("auditor")
        assert "services_post_register" in hook_manager.hook_names

    def test_missing_package_loads_nothing(self):
        container = Container()
        loader = PluginLoader(container, HookManager(container), package="kiln_no_such_plugins")
        assert loader.load_plugins() == []
        assert not container.has("loaded_plugins_manifests")
