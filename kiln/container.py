# kiln/container.py

import inspect
import logging
import threading
from typing import Any, Callable, Dict, Set

from kiln.core.contracts import Container as ContainerInterface

logger = logging.getLogger(__name__)


class Container(ContainerInterface):
    """线程安全的依赖注入容器。每个 Kiln 应用实例拥有自己的容器，互不共享。"""

    def __init__(self):
        self._factories: Dict[str, Callable] = {}
        self._singletons: Dict[str, bool] = {}
        self._instances: Dict[str, Any] = {}
        # 单例工厂内部可能再次 resolve，所以必须是可重入锁
        self._lock = threading.RLock()
        # 每个线程独立的解析栈，用于检测循环依赖
        self._local = threading.local()

    def _resolution_stack(self) -> Set[str]:
        if not hasattr(self._local, 'stack'):
            self._local.stack = set()
        return self._local.stack

    def register(self, name: str, factory: Callable, singleton: bool = True) -> None:
        """注册一个服务工厂。重复注册会覆盖之前的定义（并丢弃已创建的单例）。"""
        with self._lock:
            if name in self._factories:
                logger.warning(f"Overwriting service registration for '{name}'")
                self._instances.pop(name, None)
            self._factories[name] = factory
            self._singletons[name] = singleton

    def has(self, name: str) -> bool:
        return name in self._factories

    def _call_factory(self, factory: Callable) -> Any:
        # 工厂既可以接收容器，也可以是无参函数
        try:
            params = inspect.signature(factory).parameters
        except (TypeError, ValueError):
            return factory()
        return factory(self) if params else factory()

    def resolve(self, name: str) -> Any:
        """获取服务实例；检测到循环依赖时抛出 RuntimeError。"""
        stack = self._resolution_stack()
        if name in stack:
            path = " -> ".join(list(stack) + [name])
            raise RuntimeError(f"Circular dependency detected: {path}")

        stack.add(name)
        try:
            if name not in self._factories:
                raise ValueError(f"Service '{name}' not found in container.")

            if not self._singletons.get(name, True):
                return self._call_factory(self._factories[name])

            if name in self._instances:
                return self._instances[name]

            with self._lock:
                # 双重检查：等锁期间可能已经被别的线程创建
                if name in self._instances:
                    return self._instances[name]
                instance = self._call_factory(self._factories[name])
                self._instances[name] = instance
                logger.debug(f"Resolved service '{name}'. Singleton: True")
                return instance
        finally:
            stack.discard(name)
