# plugins/core_assets/resolver.py

import logging
from typing import FrozenSet, List, Tuple

from .contracts import AssetNotFoundError, NoConversionError, NoSourceFileError, split_extension
from .conversions import Conversion, ConversionRegistry
from .watcher import DirectoryWatcher

logger = logging.getLogger(__name__)

Resolution = Tuple[str, List[Conversion]]


class AssetResolver:
    """
    把请求的输出路径解析为 (源文件, 转换链)。

    路径本身就是监视目录中的文件时，返回空链。否则按最终扩展名查找候选转换，
    对每个候选递归解析 `stem.<from_type>`，因此支持多跳，例如 css <- scss <- scss.erb。
    返回的链按应用顺序排列：第一个转换读取源文件，最后一个产出请求的扩展名。
    """

    def __init__(self, watcher: DirectoryWatcher, registry: ConversionRegistry):
        self._watcher = watcher
        self._registry = registry

    def resolve(self, output_path: str) -> Resolution:
        source, chain = self._resolve(output_path, frozenset())
        logger.debug(f"Resolved {output_path} -> {source} (" + " | ".join(c.signature_label for c in chain) + ")")
        return source, chain

    def _resolve(self, output_path: str, attempted: FrozenSet[str]) -> Resolution:
        source = self._watcher.find(output_path)
        if source is not None:
            return source, []

        stem, out_ext = split_extension(output_path)
        candidates = self._registry.conversions_for(out_ext) if out_ext else []
        if not candidates:
            raise NoConversionError(f"No conversion for {output_path}")

        # 同一条解析路径上再次请求同一个扩展名说明转换之间互相满足，视为找不到源文件
        if out_ext in attempted:
            raise NoSourceFileError(f"Conversion cycle detected while resolving {output_path}")
        attempted = attempted | {out_ext}

        for conversion in candidates:
            candidate_path = f"{stem}.{conversion.from_type}"
            try:
                source, chain = self._resolve(candidate_path, attempted)
            except AssetNotFoundError:
                continue
            return source, chain + [conversion]

        raise NoSourceFileError(f"No source file found for {output_path}")
