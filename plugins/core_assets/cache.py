# plugins/core_assets/cache.py

import asyncio
import logging
from typing import Dict, List, Optional

from .builder import AssetBuilder
from .contracts import Asset, AssetNotFoundError, CompiledAsset, StaticAsset
from .resolver import AssetResolver
from .watcher import DirectoryWatcher, mtime_of

logger = logging.getLogger(__name__)

CachedAsset = Asset


class AssetCache:
    """
    输出路径 -> 已构建 Asset 的缓存。

    - 静态模式（生产）：一旦缓存，永远直接返回，不再检查新鲜度。
    - 动态模式（开发）：命中时重新计算同类源文件的最新修改时间，若更新则按类型整体失效后重建。
    - 同一路径同一时刻最多只有一次构建；并发调用者等待这次构建的结果。
    - 解析失败返回 None，不做负缓存。
    """

    def __init__(
        self,
        resolver: AssetResolver,
        builder: AssetBuilder,
        watcher: DirectoryWatcher,
        static: bool = False,
    ):
        self._resolver = resolver
        self._builder = builder
        self._watcher = watcher
        self._static = static
        self._entries: Dict[str, CachedAsset] = {}
        # 每个路径一把锁，实现 single-flight；锁只在有调用者持有或等待时存在
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}
        self.build_count = 0

    @property
    def static(self) -> bool:
        return self._static

    def _acquire_lock(self, path: str) -> asyncio.Lock:
        self._waiters[path] = self._waiters.get(path, 0) + 1
        return self._locks.setdefault(path, asyncio.Lock())

    def _release_lock(self, path: str) -> None:
        self._waiters[path] -= 1
        if not self._waiters[path]:
            del self._waiters[path]
            self._locks.pop(path, None)

    def peek(self, path: str) -> Optional[CachedAsset]:
        """只读访问，不触发构建或新鲜度检查。"""
        return self._entries.get(path)

    def cached_paths(self) -> List[str]:
        return list(self._entries)

    def checksums(self) -> Dict[str, str]:
        return {path: asset.checksum for path, asset in list(self._entries.items())}

    async def get(self, path: str) -> Optional[CachedAsset]:
        lock = self._acquire_lock(path)
        try:
            async with lock:
                return await self._get_locked(path)
        finally:
            self._release_lock(path)

    async def _get_locked(self, path: str) -> Optional[CachedAsset]:
        asset = self._entries.get(path)
        if asset is not None:
            if self._static or not await self._is_stale(asset):
                return asset
            self._invalidate_for(asset)

        try:
            source_path, chain = await asyncio.to_thread(self._resolver.resolve, path)
        except AssetNotFoundError as e:
            logger.debug(f"Asset not found for '{path}': {e}")
            return None

        asset = await self._builder.build(path, source_path, chain)
        self.build_count += 1
        self._entries[path] = asset
        return asset

    async def _is_stale(self, asset: CachedAsset) -> bool:
        if isinstance(asset, StaticAsset):
            try:
                current = await asyncio.to_thread(mtime_of, asset.source_path)
            except FileNotFoundError:
                return True
            return current > asset.freshness_time

        latest = await asyncio.to_thread(self._watcher.latest_mod_time, f".{asset.source_type}")
        return latest > asset.freshness_time

    def _invalidate_for(self, asset: CachedAsset) -> None:
        if isinstance(asset, StaticAsset):
            self._entries.pop(asset.virtual_path, None)
            logger.info(f"Invalidated static asset '{asset.virtual_path}'.")
            return
        self.invalidate_type(asset.source_type)

    def invalidate_type(self, source_type: str) -> int:
        """
        使所有转换链以 source_type 开头的缓存条目失效。
        跨文件的 include 无法通用地追踪，所以任意一个该类型文件变化都会让整类资源重建。
        """
        stale = [
            path for path, entry in self._entries.items()
            if isinstance(entry, CompiledAsset) and entry.source_type == source_type
        ]
        for path in stale:
            self._entries.pop(path, None)
        logger.info(f"Invalidated {len(stale)} cached asset(s) compiled from '.{source_type}'.")
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
