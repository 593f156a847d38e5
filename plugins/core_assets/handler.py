# plugins/core_assets/handler.py

import logging
import re
from email.utils import format_datetime
from typing import Optional, Tuple

from .contracts import AssetNotFoundError, AssetResponse, PathTraversalError, Servable, split_extension
from .pipeline import AssetPipeline

logger = logging.getLogger(__name__)

ONE_YEAR = 365 * 24 * 60 * 60
PRODUCTION_MAX_AGE = 600

# stem-<32位小写十六进制>[.ext]，校验和紧挨在最终扩展名之前；没有扩展名的路径校验和在末尾
FINGERPRINT_PATTERN = re.compile(r"^(?P<stem>.+)-(?P<checksum>[0-9a-f]{32})(?P<ext>\.[^./]+)?$")


def validate_path(raw_path: str) -> str:
    """拒绝任何父目录跳转。在任何文件系统访问之前调用；raw_path 应已由 HTTP 层完成百分号解码。"""
    path = raw_path.lstrip("/")
    segments = re.split(r"[/\\]", path)
    if any(segment == ".." for segment in segments):
        raise PathTraversalError(f"Path traversal attempt: {raw_path}")
    return path


def extract_fingerprint(path: str) -> Tuple[str, Optional[str]]:
    """'app-<md5>.js' -> ('app.js', '<md5>')；没有校验和标签时原样返回。"""
    match = FINGERPRINT_PATTERN.match(path)
    if match is None:
        return path, None
    return match.group("stem") + (match.group("ext") or ""), match.group("checksum")


def _plain(status_code: int, message: str, head: bool = False) -> AssetResponse:
    body = message.encode("utf-8")
    return AssetResponse(
        status_code=status_code,
        headers={"Content-Type": "text/plain", "Content-Length": str(len(body))},
        body=b"" if head else body,
    )


class AssetRequestHandler:
    """
    把一次 HTTP 请求翻译成对缓存 / bundle 表的查询。
    状态流转: 收到 -> 路径校验 -> 提取校验和 -> 解析 -> 响应。
    """

    def __init__(self, pipeline: AssetPipeline):
        self._pipeline = pipeline

    def cache_control(self, fingerprinted: bool) -> str:
        if fingerprinted:
            return f"public, max-age={ONE_YEAR}"
        if self._pipeline.static:
            return f"public, max-age={PRODUCTION_MAX_AGE}"
        return "public, must-revalidate"

    async def handle(self, method: str, raw_path: str, if_none_match: Optional[str] = None) -> AssetResponse:
        head = method.upper() == "HEAD"
        try:
            path = validate_path(raw_path)
        except PathTraversalError:
            logger.warning(f"Forbidden request path: {raw_path!r}")
            return _plain(403, "Forbidden", head)

        lookup_path, requested_checksum = extract_fingerprint(path)
        try:
            target = await self._lookup(lookup_path, requested_checksum)
        except AssetNotFoundError as e:
            logger.debug(f"Not found: {path} ({e})")
            target = None
        except Exception:
            # 编译失败的细节只记录在服务端
            logger.exception(f"Error compiling {path}")
            return _plain(500, "Internal Server Error", head)

        if target is None:
            return _plain(404, "Not found", head)

        etag = f'"{target.checksum}"'
        if if_none_match is not None and if_none_match.strip() == etag:
            return AssetResponse(status_code=304, headers={"ETag": etag}, asset_kind=target.kind)

        headers = {
            "Content-Type": target.content_type,
            "Content-Length": str(target.length),
            "ETag": etag,
            "Last-Modified": format_datetime(target.freshness_time, usegmt=True),
            "Cache-Control": self.cache_control(requested_checksum is not None),
        }
        return AssetResponse(
            status_code=200,
            headers=headers,
            body=b"" if head else target.content,
            asset_kind=target.kind,
        )

    async def _lookup(self, lookup_path: str, requested_checksum: Optional[str]) -> Optional[Servable]:
        stem, ext = split_extension(lookup_path)
        bundle = self._pipeline.lookup_bundle(stem)
        if bundle is not None and bundle.extension == ext:
            if requested_checksum is not None and bundle.checksum != requested_checksum:
                return None
            return bundle

        asset = await self._pipeline.get_asset(lookup_path)
        if asset is None:
            return None
        if requested_checksum is not None and asset.checksum != requested_checksum:
            return None
        return asset
