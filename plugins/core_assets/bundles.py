# plugins/core_assets/bundles.py

import asyncio
import logging
import threading
from typing import Callable, Dict, List, Optional, Sequence

from .contracts import (
    Bundle,
    DuplicateBundleError,
    MissingMemberError,
    MixedTypesError,
    TransformError,
    UnknownBundleTypeError,
    content_type_for,
)
from .conversions import LazyDependency

logger = logging.getLogger(__name__)

AggregateFunc = Callable[[List[bytes]], bytes]


class BundleType:
    """如何把多个同类资源合并成一个。依赖同样按名称延迟加载。"""

    def __init__(self, name: str, aggregate: AggregateFunc, dependency_name: Optional[str] = None):
        self.name = name
        self.aggregate = aggregate
        self.dependency = LazyDependency(dependency_name, owner=f"bundle type '{name}'")

    def process(self, contents: List[bytes]) -> bytes:
        self.dependency.ensure_loaded()
        try:
            return self.aggregate(contents)
        except Exception as e:
            raise TransformError(f"Bundle type '{self.name}' failed: {type(e).__name__}: {e}") from e


class BundleTypeRegistry:
    def __init__(self):
        self._types: Dict[str, BundleType] = {}
        self._lock = threading.Lock()

    def register(self, name: str, aggregate: AggregateFunc, dependency_name: Optional[str] = None) -> BundleType:
        bundle_type = BundleType(name, aggregate, dependency_name)
        with self._lock:
            if name in self._types:
                logger.warning(f"Overwriting bundle type '{name}'.")
            self._types[name] = bundle_type
        return bundle_type

    def get(self, name: str) -> BundleType:
        with self._lock:
            bundle_type = self._types.get(name)
        if bundle_type is None:
            raise UnknownBundleTypeError(f"No such bundle type {name}")
        return bundle_type

    def names(self) -> List[str]:
        with self._lock:
            return list(self._types)


class BundleManager:
    """
    按名称创建并保存 bundle。名称全局唯一；bundle 一旦创建就在进程生命周期内不变，
    不参与开发模式的失效（新的部署才是变更的单位）。
    """

    def __init__(self, cache):
        self._cache = cache
        self._bundles: Dict[str, Bundle] = {}
        self._lock = asyncio.Lock()

    async def create(self, name: str, bundle_type: BundleType, member_paths: Sequence[str]) -> Bundle:
        async with self._lock:
            if name in self._bundles:
                raise DuplicateBundleError(
                    f"There is already a bundle called {name}. Each bundle must have a different name."
                )
            if not member_paths:
                raise MissingMemberError(f"Bundle '{name}' has no members.")

            assets = []
            for path in member_paths:
                asset = await self._cache.get(path)
                if asset is None:
                    raise MissingMemberError(f"Bundle '{name}': cannot resolve member '{path}'.")
                assets.append(asset)

            extension = assets[0].extension
            if any(asset.extension != extension for asset in assets):
                found = sorted({asset.extension for asset in assets})
                raise MixedTypesError(
                    f"All assets in bundle '{name}' must have the same extension (got {', '.join(found)})."
                )

            content = await asyncio.to_thread(bundle_type.process, [a.content for a in assets])
            bundle = Bundle(
                name=name,
                bundle_type=bundle_type.name,
                member_paths=tuple(member_paths),
                content=content,
                content_type=content_type_for(extension),
                extension=extension,
                freshness_time=max(a.freshness_time for a in assets),
            )
            self._bundles[name] = bundle
            logger.info(f"Created bundle '{name}' ({bundle_type.name}, {len(assets)} member(s), {bundle.checksum}).")
            return bundle

    def lookup(self, name: Optional[str]) -> Optional[Bundle]:
        if not name:
            return None
        return self._bundles.get(name)

    def all(self) -> List[Bundle]:
        return list(self._bundles.values())
