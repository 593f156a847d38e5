# plugins/core_assets/config.py

import os
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

PRODUCTION = "production"
DEVELOPMENT = "development"


class AssetServerConfig(BaseModel):
    """资源服务的运行配置。通常由 `from_env()` 从环境变量（以及 .env）构建。"""
    environment: str = Field(default=DEVELOPMENT)
    mount: str = Field(default="/assets")
    watch_roots: List[str] = Field(default_factory=list)
    bundles_file: Optional[str] = None

    @field_validator('mount')
    @classmethod
    def normalize_mount(cls, v: str) -> str:
        v = "/" + v.strip().strip("/")
        return "" if v == "/" else v

    @field_validator('environment')
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return v.strip().lower() or DEVELOPMENT

    @property
    def static(self) -> bool:
        """生产环境假定文件系统不变。"""
        return self.environment == PRODUCTION

    @classmethod
    def from_env(cls) -> "AssetServerConfig":
        roots_str = os.getenv("KILN_WATCH_ROOTS", "")
        return cls(
            environment=os.getenv("KILN_ENV", DEVELOPMENT),
            mount=os.getenv("KILN_MOUNT", "/assets"),
            watch_roots=[r.strip() for r in roots_str.split(',') if r.strip()],
            bundles_file=os.getenv("KILN_BUNDLES_FILE") or None,
        )


class BundleDefinition(BaseModel):
    name: str
    type: str = "concatenate"
    members: List[str]


def load_bundle_definitions(path: str) -> List[BundleDefinition]:
    """读取启动时要创建的 bundle 声明：`bundles: [{name, type, members}]`。"""
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    return [BundleDefinition.model_validate(item) for item in data.get("bundles", [])]
