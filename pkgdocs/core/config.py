"""集中配置管理

Config 从 YAML 文件加载 + 编程式覆盖；RunContext 是一次运行的不可变快照
（注册表、严格模式、并发上限、超时、URL 模板、重试策略），显式传入各阶段，
不使用进程级全局配置。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

import yaml

from pkgdocs.core.docs.fetcher import RetryPolicy
from pkgdocs.core.docs.models import Registry
from pkgdocs.core.docs.resolver import UrlTemplate
from pkgdocs.core.exceptions import ConfigError
from pkgdocs.utils.yaml_io import load_mapping

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "pkgdocs.yml"


@dataclass
class Config:
    """聚合工具配置"""

    # 路径
    registry: str = "docs/packages.toml"
    output_dir: str = "docs/generated"

    # 远端地址
    host: str = "raw.githubusercontent.com"
    blob_host: str = "github.com"
    repo_suffix: str = "jl"
    default_owner: str = "jump-dev"

    # 执行
    max_concurrency: int = 8
    request_timeout: float = 30.0
    run_timeout: float = 600.0
    strict: bool = False

    # 重试
    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_factor: float = 2.0

    # 注册表校验
    reject_movable_revisions: bool = False

    # 放不到字段里的配置项
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_mapping(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"读取配置失败: {path}: {e}") from e
        if not data:
            return cls()
        known = {f for f in cls.__dataclass_fields__ if f != "extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        if extra:
            logger.warning("配置文件 %s 包含未识别的键: %s", path, ", ".join(extra))
        cfg = cls(**matched)
        cfg.extra = extra
        try:
            cfg.validate()
        except TypeError as e:
            raise ConfigError(f"配置字段类型错误: {path}: {e}") from e
        logger.info("配置已加载: %s", path)
        return cfg

    def validate(self) -> None:
        """校验数值型限制，非法时抛出 ConfigError"""
        problems = []
        if self.max_concurrency < 1:
            problems.append(f"max_concurrency 必须 >= 1: {self.max_concurrency}")
        if self.request_timeout <= 0:
            problems.append(f"request_timeout 必须 > 0: {self.request_timeout}")
        if self.run_timeout <= 0:
            problems.append(f"run_timeout 必须 > 0: {self.run_timeout}")
        if self.max_attempts < 1:
            problems.append(f"max_attempts 必须 >= 1: {self.max_attempts}")
        if self.backoff_base < 0 or self.backoff_factor < 1:
            problems.append("backoff_base 必须 >= 0 且 backoff_factor 必须 >= 1")
        if problems:
            raise ConfigError("配置无效: " + "; ".join(problems))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RunContext:
    """单次聚合运行的不可变上下文"""

    registry: Registry
    template: UrlTemplate = field(default_factory=UrlTemplate)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    strict: bool = False
    max_concurrency: int = 8
    request_timeout: float = 30.0
    run_timeout: float = 600.0

    @classmethod
    def from_config(
        cls,
        cfg: Config,
        registry: Registry,
        *,
        strict: bool | None = None,
        max_concurrency: int | None = None,
        run_timeout: float | None = None,
    ) -> RunContext:
        """由配置 + 命令行覆盖项构建运行上下文"""
        concurrency = cfg.max_concurrency if max_concurrency is None else max_concurrency
        timeout = cfg.run_timeout if run_timeout is None else run_timeout
        if concurrency < 1:
            raise ConfigError(f"并发上限必须 >= 1: {concurrency}")
        if timeout <= 0:
            raise ConfigError(f"运行超时必须 > 0: {timeout}")
        return cls(
            registry=registry,
            template=UrlTemplate(
                host=cfg.host, blob_host=cfg.blob_host, suffix=cfg.repo_suffix,
            ),
            retry=RetryPolicy(
                max_attempts=cfg.max_attempts,
                backoff_base=cfg.backoff_base,
                backoff_factor=cfg.backoff_factor,
            ),
            strict=cfg.strict if strict is None else strict,
            max_concurrency=concurrency,
            request_timeout=cfg.request_timeout,
            run_timeout=timeout,
        )
