# plugins/core_assets/contracts.py

from __future__ import annotations
import hashlib
import mimetypes
from datetime import datetime, timezone
from functools import cached_property
from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

# “没有任何匹配文件”时的最新修改时间
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# 优先使用固定映射，mimetypes 在不同平台上对 js 的结果不一致
KNOWN_CONTENT_TYPES: Dict[str, str] = {
    "css": "text/css",
    "js": "application/javascript",
    "json": "application/json",
    "map": "application/json",
    "html": "text/html",
    "svg": "image/svg+xml",
    "txt": "text/plain",
}


def compute_checksum(content: bytes) -> str:
    """内容寻址的校验和：32 位小写十六进制 MD5。"""
    return hashlib.md5(content).hexdigest()


def content_type_for(extension: str) -> str:
    extension = extension.lstrip(".").lower()
    if extension in KNOWN_CONTENT_TYPES:
        return KNOWN_CONTENT_TYPES[extension]
    guessed, _ = mimetypes.guess_type(f"file.{extension}")
    return guessed or DEFAULT_CONTENT_TYPE


def split_extension(path: str) -> Tuple[str, str]:
    """把 'css/site.min.css' 拆成 ('css/site.min', 'css')；没有扩展名时第二项为空串。"""
    stem, dot, ext = path.rpartition(".")
    if not dot or "/" in ext or not stem or stem.endswith("/"):
        return path, ""
    return stem, ext


# --- 异常体系 ---

class AssetPipelineError(Exception):
    """所有资源管线错误的基类。"""


class InvalidWatchRootError(AssetPipelineError):
    """注册的监视目录不是一个目录。属于启动期的致命错误。"""


class AssetNotFoundError(AssetPipelineError):
    """请求的路径无法解析为任何资源。请求边界会把它转换为 404。"""


class NoConversionError(AssetNotFoundError):
    """没有任何已注册的转换能产出所请求的扩展名。"""


class NoSourceFileError(AssetNotFoundError):
    """存在候选转换，但找不到可用的源文件（或解析链出现循环）。"""


class MissingMemberError(AssetNotFoundError):
    """bundle 的某个成员路径无法解析。"""


class DependencyUnavailableError(AssetPipelineError):
    """转换或 bundle 类型依赖的外部模块无法加载。"""


class TransformError(AssetPipelineError):
    """转换函数本身在给定输入上失败。"""


class DuplicateBundleError(AssetPipelineError):
    pass


class MixedTypesError(AssetPipelineError):
    """bundle 成员的最终扩展名不一致。"""


class UnknownBundleTypeError(AssetPipelineError):
    pass


class PathTraversalError(AssetPipelineError):
    pass


# --- 资源模型 ---
# 三种资源是同一个带判别字段 `kind` 的联合类型，而不是继承层级。
# 所有模型都是冻结的：失效只会替换缓存中的条目，从不原地修改共享实例。

class _AssetBase(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    content: bytes = Field(repr=False)
    content_type: str
    extension: str
    freshness_time: datetime

    @property
    def length(self) -> int:
        return len(self.content)

    @cached_property
    def checksum(self) -> str:
        # content 不可变，因此这里算出的值永远与内容一致
        return compute_checksum(self.content)


class StaticAsset(_AssetBase):
    """监视目录中的真实文件，原样输出（转换链长度为 0）。"""
    kind: Literal["static"] = "static"
    virtual_path: str
    source_path: str


class CompiledAsset(_AssetBase):
    """源文件经过一条转换链之后的产物。"""
    kind: Literal["compiled"] = "compiled"
    virtual_path: str
    source_path: str
    # 按应用顺序排列：第一个转换读取源文件
    conversion_chain: Tuple[Any, ...]

    @property
    def source_type(self) -> str:
        return self.conversion_chain[0].from_type


class Bundle(_AssetBase):
    """多个已解析资源聚合后的产物，以名称唯一标识。"""
    kind: Literal["bundle"] = "bundle"
    name: str
    bundle_type: str
    member_paths: Tuple[str, ...]


Asset = Annotated[Union[StaticAsset, CompiledAsset], Field(discriminator="kind")]
Servable = Annotated[Union[StaticAsset, CompiledAsset, Bundle], Field(discriminator="kind")]


class AssetResponse(BaseModel):
    """请求处理器的输出，与具体 HTTP 框架无关。"""
    status_code: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    asset_kind: Optional[str] = None
