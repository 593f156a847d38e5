# plugins/core_assets/pipeline.py

import html
import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from .builder import AssetBuilder
from .builtin import register_builtin_bundle_types, register_builtin_conversions
from .bundles import AggregateFunc, BundleManager, BundleTypeRegistry
from .cache import AssetCache, CachedAsset
from .config import AssetServerConfig
from .contracts import AssetNotFoundError, Bundle, DuplicateBundleError, split_extension
from .conversions import Conversion, ConversionRegistry, TransformFunc, WatchHook
from .resolver import AssetResolver
from .watcher import DirectoryWatcher

logger = logging.getLogger(__name__)


class AssetPipeline:
    """
    一个资源服务实例拥有的全部状态：监视目录、转换目录、bundle 类型、资源缓存和 bundle 表。
    所有注册表都通过构造注入，同一进程中可以存在多个互相独立的实例。
    """

    def __init__(
        self,
        config: Optional[AssetServerConfig] = None,
        conversions: Optional[ConversionRegistry] = None,
        bundle_types: Optional[BundleTypeRegistry] = None,
        with_builtins: bool = True,
    ):
        self.config = config or AssetServerConfig()
        self.conversions = conversions or ConversionRegistry()
        self.bundle_types = bundle_types or BundleTypeRegistry()
        if with_builtins:
            register_builtin_conversions(self.conversions)
            register_builtin_bundle_types(self.bundle_types)

        self.watcher = DirectoryWatcher(static=self.config.static)
        self.resolver = AssetResolver(self.watcher, self.conversions)
        self.builder = AssetBuilder(self.watcher, self.conversions)
        self.cache = AssetCache(self.resolver, self.builder, self.watcher, static=self.config.static)
        self.bundles = BundleManager(self.cache)

        for root in self.config.watch_roots:
            self.add_watch_root(root)

    @property
    def static(self) -> bool:
        return self.config.static

    @property
    def mount(self) -> str:
        return self.config.mount

    # --- 注册 API ---

    def register_conversion(
        self,
        from_type: str,
        to_type: str,
        transform: TransformFunc,
        dependency_name: Optional[str] = None,
        on_watch: Optional[WatchHook] = None,
    ) -> Conversion:
        return self.conversions.register(from_type, to_type, transform, dependency_name, on_watch)

    def register_bundle_type(self, name: str, aggregate: AggregateFunc, dependency_name: Optional[str] = None):
        return self.bundle_types.register(name, aggregate, dependency_name)

    def add_watch_root(self, path: Union[str, Path]) -> Path:
        root = self.watcher.add_root(path)
        self.conversions.add_watch_root(str(root))
        return root

    async def create_bundle(self, name: str, bundle_type_name: str, member_paths: Sequence[str]) -> Bundle:
        bundle_type = self.bundle_types.get(bundle_type_name)
        return await self.bundles.create(name, bundle_type, list(member_paths))

    # --- 查询 ---

    async def get_asset(self, path: str) -> Optional[CachedAsset]:
        return await self.cache.get(path)

    async def require_asset(self, path: str) -> CachedAsset:
        asset = await self.cache.get(path)
        if asset is None:
            raise AssetNotFoundError(f"No asset found for {path}")
        return asset

    def lookup_bundle(self, name: str) -> Optional[Bundle]:
        return self.bundles.lookup(name)

    # --- 视图辅助函数：只计算 URL，不发起网络请求 ---

    def _url(self, path: str) -> str:
        return f"{self.mount}/{path.lstrip('/')}"

    async def asset_url(self, path: str, fingerprint: Optional[bool] = None) -> str:
        """生产模式下返回带校验和的 URL（可无限期缓存），开发模式下返回普通 URL。"""
        fingerprint = self.static if fingerprint is None else fingerprint
        if not fingerprint:
            return self._url(path)
        asset = await self.require_asset(path)
        stem, ext = split_extension(path)
        if not ext:
            return self._url(f"{path}-{asset.checksum}")
        return self._url(f"{stem}-{asset.checksum}.{ext}")

    async def css_url(self, path: str) -> str:
        return await self.asset_url(path)

    async def js_url(self, path: str) -> str:
        return await self.asset_url(path)

    async def css_tag(self, path: str) -> str:
        url = html.escape(await self.css_url(path), quote=True)
        return f'<link type="text/css" rel="stylesheet" href="{url}" />'

    async def js_tag(self, path: str) -> str:
        url = html.escape(await self.js_url(path), quote=True)
        return f'<script src="{url}"></script>'

    async def asset_inline(self, path: str) -> str:
        asset = await self.require_asset(path)
        return asset.content.decode("utf-8")

    async def css_inline(self, path: str) -> str:
        return f"<style type=\"text/css\">{await self.asset_inline(path)}</style>"

    async def js_inline(self, path: str) -> str:
        return f"<script>{await self.asset_inline(path)}</script>"

    def bundle_url(self, name: str) -> str:
        bundle = self.lookup_bundle(name)
        if bundle is None:
            raise AssetNotFoundError(f"No bundle named {name}")
        return self._url(f"{name}-{bundle.checksum}.{bundle.extension}")

    async def _ensure_bundle(self, bundle_type_name: str, name: str, paths: Sequence[str]) -> Bundle:
        existing = self.lookup_bundle(name)
        if existing is None:
            return await self.create_bundle(name, bundle_type_name, paths)
        if existing.bundle_type != bundle_type_name or existing.member_paths != tuple(paths):
            raise DuplicateBundleError(
                f"There is already a bundle called {name} with a different definition."
            )
        return existing

    async def js_bundle(self, bundle_type_name: str, name: str, *paths: str) -> str:
        """生产模式下输出一个 bundle 的 script 标签；开发模式下逐个输出成员标签，便于调试。"""
        if not self.static:
            return "\n".join([await self.js_tag(p) for p in paths])
        await self._ensure_bundle(bundle_type_name, name, paths)
        url = html.escape(self.bundle_url(name), quote=True)
        return f'<script src="{url}"></script>'

    async def css_bundle(self, bundle_type_name: str, name: str, *paths: str) -> str:
        if not self.static:
            return "\n".join([await self.css_tag(p) for p in paths])
        await self._ensure_bundle(bundle_type_name, name, paths)
        url = html.escape(self.bundle_url(name), quote=True)
        return f'<link type="text/css" rel="stylesheet" href="{url}" />'

    def describe(self) -> dict:
        """诊断报告使用的当前状态快照。"""
        return {
            "environment": self.config.environment,
            "static": self.static,
            "mount": self.mount,
            "watch_roots": [str(r) for r in self.watcher.roots],
            "conversions": [c.signature_label for c in self.conversions.all()],
            "bundle_types": self.bundle_types.names(),
            "cached_assets": self.cache.checksums(),
            "bundles": {b.name: b.checksum for b in self.bundles.all()},
        }

