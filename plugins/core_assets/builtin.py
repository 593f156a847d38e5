# plugins/core_assets/builtin.py
"""
内置的转换与 bundle 类型。

编译器后端（libsass、coffeescript、rjsmin）都是可选依赖，只在第一次真正使用时导入；
缺失时对应的转换会抛出 DependencyUnavailableError，而不是在启动时失败。
"""

import re
from typing import List

from .bundles import BundleTypeRegistry
from .conversions import ConversionRegistry

_BLANK = re.compile(rb"\A\s*\Z")
_ENDS_WITH_SEMICOLON = re.compile(rb";\s*\Z")


class SassCompiler:
    """scss/sass -> css。on_watch 收集监视目录，作为 @import 的搜索路径。"""

    def __init__(self, indented: bool = False):
        self.indented = indented
        self.include_paths: List[str] = []

    def add_include_path(self, path: str) -> None:
        if path not in self.include_paths:
            self.include_paths.append(path)

    def __call__(self, data: bytes) -> bytes:
        import sass
        css = sass.compile(
            string=data.decode("utf-8"),
            indented=self.indented,
            include_paths=list(self.include_paths),
        )
        return css.encode("utf-8")


def compile_coffee(data: bytes) -> bytes:
    import coffeescript
    return coffeescript.compile(data.decode("utf-8")).encode("utf-8")


def register_builtin_conversions(registry: ConversionRegistry) -> None:
    for from_type, indented in (("scss", False), ("sass", True)):
        compiler = SassCompiler(indented=indented)
        registry.register(
            from_type, "css", compiler,
            dependency_name="sass",
            on_watch=compiler.add_include_path,
        )
    registry.register("coffee", "js", compile_coffee, dependency_name="coffeescript")


# --- bundle 聚合函数：接收按顺序排列的成员内容，返回合并后的字节 ---

def concatenate(contents: List[bytes]) -> bytes:
    return b"".join(contents)


def concatenate_js(contents: List[bytes]) -> bytes:
    """拼接 JS；非空且不以分号结尾的成员后面补上 ';\\n'，避免拼接后语句粘连。"""
    parts = []
    for content in contents:
        if not _BLANK.match(content) and not _ENDS_WITH_SEMICOLON.search(content):
            content = content + b";\n"
        parts.append(content)
    return b"".join(parts)


def concatenate_and_minify_js(contents: List[bytes]) -> bytes:
    import rjsmin
    return rjsmin.jsmin(concatenate_js(contents).decode("utf-8")).encode("utf-8")


def register_builtin_bundle_types(registry: BundleTypeRegistry) -> None:
    registry.register("concatenate", concatenate)
    registry.register("concatenate_js", concatenate_js)
    registry.register("concatenate_and_minify_js", concatenate_and_minify_js, dependency_name="rjsmin")
