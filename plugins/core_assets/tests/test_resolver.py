# plugins/core_assets/tests/test_resolver.py

import pytest

from plugins.core_assets.contracts import NoConversionError, NoSourceFileError
from plugins.core_assets.conversions import ConversionRegistry
from plugins.core_assets.resolver import AssetResolver
from plugins.core_assets.watcher import DirectoryWatcher


def identity(data: bytes) -> bytes:
    return data


@pytest.fixture
def watcher(asset_root) -> DirectoryWatcher:
    watcher = DirectoryWatcher()
    watcher.add_root(asset_root)
    return watcher


@pytest.fixture
def registry() -> ConversionRegistry:
    registry = ConversionRegistry()
    registry.register("scss", "css", identity)
    return registry


class TestAssetResolver:

    def test_literal_file_has_empty_chain(self, watcher, registry, asset_root):
        source, chain = AssetResolver(watcher, registry).resolve("plain.css")
        assert source == str(asset_root.resolve() / "plain.css")
        assert chain == []

    def test_single_hop(self, watcher, registry, asset_root):
        source, chain = AssetResolver(watcher, registry).resolve("style.css")
        assert source == str(asset_root.resolve() / "style.scss")
        assert [c.signature_label for c in chain] == ["scss->css"]

    def test_nested_path(self, watcher, registry):
        source, chain = AssetResolver(watcher, registry).resolve("css/nested.css")
        assert source.endswith("nested.scss")
        assert len(chain) == 1

    def test_multi_hop_chain_is_in_application_order(self, watcher, registry, asset_root):
        (asset_root / "theme.scss.tmpl").write_text("body{}")
        registry.register("scss.tmpl", "scss", identity)

        source, chain = AssetResolver(watcher, registry).resolve("theme.css")
        assert source.endswith("theme.scss.tmpl")
        # 第一个转换读取源文件，最后一个产出请求的扩展名
        assert [c.signature_label for c in chain] == ["scss.tmpl->scss", "scss->css"]

    def test_no_conversion(self, watcher, registry):
        resolver = AssetResolver(watcher, registry)
        with pytest.raises(NoConversionError):
            resolver.resolve("image.png")
        with pytest.raises(NoConversionError):
            resolver.resolve("README")

    def test_no_source_file(self, watcher, registry):
        with pytest.raises(NoSourceFileError):
            AssetResolver(watcher, registry).resolve("missing.css")

    def test_later_candidate_is_tried(self, watcher, registry, asset_root):
        (asset_root / "legacy.less").write_text("a{}")
        registry.register("less", "css", identity)

        source, chain = AssetResolver(watcher, registry).resolve("legacy.css")
        assert source.endswith("legacy.less")
        assert chain[0].from_type == "less"

    def test_mutually_satisfying_conversions_terminate(self, watcher):
        registry = ConversionRegistry()
        registry.register("a", "b", identity)
        registry.register("b", "a", identity)

        with pytest.raises(NoSourceFileError):
            AssetResolver(watcher, registry).resolve("loop.a")

    def test_resolution_is_deterministic(self, watcher, registry):
        resolver = AssetResolver(watcher, registry)
        first_source, first_chain = resolver.resolve("style.css")
        for _ in range(3):
            source, chain = resolver.resolve("style.css")
            assert source == first_source
            assert [c.signature for c in chain] == [c.signature for c in first_chain]
