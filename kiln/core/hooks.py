# kiln/core/hooks.py
import asyncio
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from kiln.core.contracts import HookManager as HookManagerInterface, Container

logger = logging.getLogger(__name__)

T = TypeVar('T')

HookCallable = Callable[..., Awaitable[Any]]


@dataclass(order=True)
class HookImplementation:
    """一个钩子实现及其元数据。按 priority 从小到大执行。"""
    priority: int
    func: HookCallable = field(compare=False)
    plugin_name: str = field(compare=False, default="<unknown>")


class HookManager(HookManagerInterface):
    """
    负责注册和调度所有钩子实现。
    调用时会按参数名把共享上下文（container、hook_manager、pipeline 等）注入到钩子函数中。
    """

    def __init__(self, container: Optional[Container] = None):
        self._hooks: Dict[str, List[HookImplementation]] = defaultdict(list)
        self._shared_context: Dict[str, Any] = {"hook_manager": self}
        if container is not None:
            self._shared_context["container"] = container
        logger.debug("HookManager initialized.")

    @property
    def hook_names(self) -> List[str]:
        return list(self._hooks.keys())

    def add_shared_context(self, name: str, service: Any) -> None:
        if name in self._shared_context:
            logger.warning(f"Overwriting shared context for hooks: '{name}'")
        self._shared_context[name] = service

    def _prepare_hook_args(
        self,
        func: HookCallable,
        call_context: Dict[str, Any],
        positional_data: Any = None,
        has_positional: bool = False,
    ) -> Tuple[list, dict]:
        params = list(inspect.signature(func).parameters.values())
        args: list = []
        if has_positional:
            # filter 钩子的数据总是第一个位置参数
            args.append(positional_data)
            params = params[1:]

        kwargs = {}
        accepts_var_kwargs = any(p.kind == p.VAR_KEYWORD for p in params)
        for param in params:
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            if param.name in call_context:
                kwargs[param.name] = call_context[param.name]
        if accepts_var_kwargs:
            for name, value in call_context.items():
                kwargs.setdefault(name, value)
        return args, kwargs

    def add_implementation(
        self,
        hook_name: str,
        implementation: HookCallable,
        priority: int = 10,
        plugin_name: str = "<core>"
    ):
        if not asyncio.iscoroutinefunction(implementation):
            raise TypeError(f"Hook implementation for '{hook_name}' must be an async function.")

        self._hooks[hook_name].append(
            HookImplementation(priority=priority, func=implementation, plugin_name=plugin_name)
        )
        self._hooks[hook_name].sort()
        logger.debug(f"Registered hook '{hook_name}' from plugin '{plugin_name}' with priority {priority}.")

    async def trigger(self, hook_name: str, **kwargs: Any) -> None:
        """通知型钩子：并发执行所有实现，忽略返回值，单个实现失败只记录日志。"""
        if hook_name not in self._hooks:
            return

        call_context = {**self._shared_context, **kwargs}
        implementations = list(self._hooks[hook_name])
        coros = []
        for impl in implementations:
            _, prepared_kwargs = self._prepare_hook_args(impl.func, call_context)
            coros.append(impl.func(**prepared_kwargs))

        results = await asyncio.gather(*coros, return_exceptions=True)
        for impl, result in zip(implementations, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Error in NOTIFICATION hook '{hook_name}' from plugin '{impl.plugin_name}': {result}",
                    exc_info=result
                )

    async def trigger_strict(self, hook_name: str, **kwargs: Any) -> None:
        """
        启动阶段使用的通知型钩子：按优先级顺序逐个执行，异常直接向上抛出。
        配置错误（例如无效的监视目录、重名的 bundle）必须让启动失败，而不是被吞掉。
        """
        call_context = {**self._shared_context, **kwargs}
        for impl in list(self._hooks.get(hook_name, [])):
            _, prepared_kwargs = self._prepare_hook_args(impl.func, call_context)
            await impl.func(**prepared_kwargs)

    async def filter(self, hook_name: str, data: T, **kwargs: Any) -> T:
        """过滤型钩子：按优先级依次处理数据，前一个的返回值是后一个的输入。"""
        if hook_name not in self._hooks:
            return data

        call_context = {**self._shared_context, **kwargs}
        current = data
        for impl in self._hooks[hook_name]:
            try:
                args, prepared_kwargs = self._prepare_hook_args(
                    impl.func, call_context, positional_data=current, has_positional=True
                )
                current = await impl.func(*args, **prepared_kwargs)
            except Exception as e:
                logger.error(
                    f"Error in FILTER hook '{hook_name}' from plugin '{impl.plugin_name}'. Skipping. Error: {e}",
                    exc_info=e
                )
        return current

    async def decide(self, hook_name: str, **kwargs: Any) -> Optional[Any]:
        """决策型钩子：从优先级最高（数值最大）的实现开始，返回第一个非 None 的结果。"""
        if hook_name not in self._hooks:
            return None

        call_context = {**self._shared_context, **kwargs}
        for impl in reversed(self._hooks[hook_name]):
            try:
                _, prepared_kwargs = self._prepare_hook_args(impl.func, call_context)
                result = await impl.func(**prepared_kwargs)
            except Exception as e:
                logger.error(
                    f"Error in DECIDE hook '{hook_name}' from plugin '{impl.plugin_name}'. Skipping. Error: {e}",
                    exc_info=e
                )
                continue
            if result is not None:
                return result
        return None
