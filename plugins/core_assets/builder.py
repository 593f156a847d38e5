# plugins/core_assets/builder.py

import asyncio
import logging
from typing import List, Sequence, Union

import aiofiles

from .contracts import CompiledAsset, StaticAsset, content_type_for, split_extension
from .conversions import Conversion, ConversionRegistry
from .watcher import DirectoryWatcher, mtime_of

logger = logging.getLogger(__name__)


class AssetBuilder:
    """
    读取源文件一次，按顺序应用转换链，生成不可变的 Asset。
    任何一步失败都会抛出异常，调用方不会得到（也不会缓存）半成品。
    """

    def __init__(self, watcher: DirectoryWatcher, registry: ConversionRegistry):
        self._watcher = watcher
        self._registry = registry

    async def build(
        self,
        virtual_path: str,
        source_path: str,
        chain: Sequence[Conversion],
    ) -> Union[StaticAsset, CompiledAsset]:
        # 新鲜度在读取源文件之前取得，编译期间保存的修改会让这次结果立即过期
        if chain:
            source_type = chain[0].from_type
            freshness = await asyncio.to_thread(self._watcher.latest_mod_time, f".{source_type}")
        else:
            freshness = await asyncio.to_thread(mtime_of, source_path)

        async with aiofiles.open(source_path, mode='rb') as f:
            content = await f.read()

        if not chain:
            _, extension = split_extension(source_path)
            return StaticAsset(
                virtual_path=virtual_path,
                source_path=source_path,
                content=content,
                content_type=content_type_for(extension),
                extension=extension,
                freshness_time=freshness,
            )

        logger.info(
            f"Compiling {virtual_path} from {source_path} via "
            + " | ".join(c.signature_label for c in chain)
        )
        content = await asyncio.to_thread(self._apply_chain, list(chain), content)

        final_type = chain[-1].to_type
        return CompiledAsset(
            virtual_path=virtual_path,
            source_path=source_path,
            conversion_chain=tuple(chain),
            content=content,
            content_type=content_type_for(final_type),
            extension=final_type,
            freshness_time=freshness,
        )

    def _apply_chain(self, chain: List[Conversion], content: bytes) -> bytes:
        for conversion in chain:
            content = self._registry.apply(conversion, content)
        return content
