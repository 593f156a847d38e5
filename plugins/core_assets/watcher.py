# plugins/core_assets/watcher.py

import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from .contracts import EPOCH, InvalidWatchRootError

logger = logging.getLogger(__name__)


def mtime_of(path: Union[str, Path]) -> datetime:
    return datetime.fromtimestamp(os.stat(path).st_mtime, tz=timezone.utc)


class DirectoryWatcher:
    """
    一组有序的根目录。`find` 按注册顺序返回第一个存在的文件；
    `latest_mod_time` 用于开发模式下的失效判断。

    static=True 时假定文件系统在进程生命周期内不变（生产模式），
    `find` 的结果（包括“没找到”）会被永久缓存。
    """

    def __init__(self, static: bool = False):
        self._static = static
        # dict 当作有序集合使用
        self._roots: Dict[Path, None] = {}
        self._find_cache: Dict[str, Optional[str]] = {}
        # find 会在工作线程中被调用
        self._lock = threading.Lock()

    @property
    def static(self) -> bool:
        return self._static

    @property
    def roots(self) -> List[Path]:
        return list(self._roots)

    def add_root(self, path: Union[str, Path]) -> Path:
        root = Path(path)
        if not root.is_dir():
            raise InvalidWatchRootError(f"{path} is not a directory.")
        root = root.resolve()
        with self._lock:
            if root in self._roots:
                logger.debug(f"Watch root already registered: {root}")
                return root
            self._roots[root] = None
            self._find_cache.clear()
        logger.info(f"Watching directory: {root}")
        return root

    def find(self, relative_path: str) -> Optional[str]:
        if self._static:
            with self._lock:
                if relative_path in self._find_cache:
                    return self._find_cache[relative_path]

        result = None
        for root in self.roots:
            candidate = root / relative_path
            if candidate.is_file():
                result = str(candidate)
                break

        if self._static:
            with self._lock:
                self._find_cache[relative_path] = result
        return result

    def latest_mod_time(self, suffix: str) -> datetime:
        """所有根目录下（递归）以 suffix 结尾的文件中最新的修改时间；没有匹配时返回 EPOCH。"""
        latest = EPOCH
        for root in self.roots:
            for dirpath, _, filenames in os.walk(root):
                for filename in filenames:
                    if not filename.endswith(suffix):
                        continue
                    try:
                        mtime = mtime_of(os.path.join(dirpath, filename))
                    except FileNotFoundError:
                        # 扫描过程中被删除的文件直接忽略
                        continue
                    if mtime > latest:
                        latest = mtime
        return latest
