# plugins/core_assets/conversions.py

import importlib
import logging
import threading
from enum import Enum
from types import ModuleType
from typing import Callable, Dict, List, Optional, Tuple

from .contracts import DependencyUnavailableError, TransformError

logger = logging.getLogger(__name__)

TransformFunc = Callable[[bytes], bytes]
WatchHook = Callable[[str], None]


class DependencyState(str, Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"
    FAILED = "failed"


class LazyDependency:
    """
    一个按名称延迟导入的外部模块。
    状态机: UNLOADED -> LOADED 或 UNLOADED -> FAILED；失败是永久的，
    之后每次使用都会重新抛出同一个错误，不会重试导入。
    """

    def __init__(self, module_name: Optional[str], owner: str):
        self.module_name = module_name
        self._owner = owner
        self._state = DependencyState.LOADED if module_name is None else DependencyState.UNLOADED
        self._module: Optional[ModuleType] = None
        self._error: Optional[DependencyUnavailableError] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> DependencyState:
        return self._state

    def ensure_loaded(self) -> Optional[ModuleType]:
        if self._state is DependencyState.LOADED:
            return self._module
        with self._lock:
            if self._state is DependencyState.UNLOADED:
                try:
                    self._module = importlib.import_module(self.module_name)
                    self._state = DependencyState.LOADED
                    logger.info(f"Loaded dependency '{self.module_name}' for {self._owner}.")
                except ImportError as e:
                    self._error = DependencyUnavailableError(
                        f"Tried to load {self._owner}, but failed to import '{self.module_name}'."
                    )
                    self._error.__cause__ = e
                    self._state = DependencyState.FAILED
                    logger.error(f"Dependency '{self.module_name}' for {self._owner} is unavailable: {e}")
        if self._state is DependencyState.FAILED:
            raise self._error
        return self._module


class Conversion:
    """把一种扩展名的文件内容转换为另一种扩展名。身份由 (from_type, to_type) 决定。"""

    def __init__(
        self,
        from_type: str,
        to_type: str,
        transform: TransformFunc,
        dependency_name: Optional[str] = None,
        on_watch: Optional[WatchHook] = None,
    ):
        self.from_type = from_type.lstrip(".")
        self.to_type = to_type.lstrip(".")
        self.transform = transform
        self.on_watch = on_watch
        self.dependency = LazyDependency(dependency_name, owner=f"conversion {self.signature_label}")

    @property
    def signature(self) -> Tuple[str, str]:
        return (self.from_type, self.to_type)

    @property
    def signature_label(self) -> str:
        return f"{self.from_type}->{self.to_type}"

    @property
    def dependency_name(self) -> Optional[str]:
        return self.dependency.module_name

    def __repr__(self) -> str:
        return f"Conversion({self.signature_label})"


class ConversionRegistry:
    """
    已注册转换的目录。每个 (from, to) 最多只有一个有效定义，重复注册会覆盖。
    注册发生在启动期，查询与 apply 在请求期的工作线程中进行。
    """

    def __init__(self):
        self._conversions: Dict[Tuple[str, str], Conversion] = {}
        self._watch_roots: List[str] = []
        self._lock = threading.RLock()

    def register(
        self,
        from_type: str,
        to_type: str,
        transform: TransformFunc,
        dependency_name: Optional[str] = None,
        on_watch: Optional[WatchHook] = None,
    ) -> Conversion:
        conversion = Conversion(from_type, to_type, transform, dependency_name, on_watch)
        with self._lock:
            if conversion.signature in self._conversions:
                logger.warning(f"Overwriting conversion registration for '{conversion.signature_label}'.")
            self._conversions[conversion.signature] = conversion
            known_roots = list(self._watch_roots)
        # 后注册的转换也要知道已经存在的监视目录
        if on_watch is not None:
            for root in known_roots:
                on_watch(root)
        logger.debug(f"Conversion '{conversion.signature_label}' registered.")
        return conversion

    def get(self, from_type: str, to_type: str) -> Optional[Conversion]:
        with self._lock:
            return self._conversions.get((from_type, to_type))

    def conversions_for(self, to_type: str) -> List[Conversion]:
        """所有产出 to_type 的转换，按注册顺序排列。"""
        with self._lock:
            return [c for c in self._conversions.values() if c.to_type == to_type]

    def all(self) -> List[Conversion]:
        with self._lock:
            return list(self._conversions.values())

    def add_watch_root(self, path: str) -> None:
        """把新的监视目录广播给所有带 on_watch 钩子的转换（例如 scss 的 include 路径）。"""
        with self._lock:
            if path in self._watch_roots:
                return
            self._watch_roots.append(path)
            targets = [c for c in self._conversions.values() if c.on_watch is not None]
        for conversion in targets:
            conversion.on_watch(path)

    def apply(self, conversion: Conversion, data: bytes) -> bytes:
        conversion.dependency.ensure_loaded()
        try:
            return conversion.transform(data)
        except Exception as e:
            raise TransformError(
                f"Conversion '{conversion.signature_label}' failed: {type(e).__name__}: {e}"
            ) from e
