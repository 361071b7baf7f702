"""文档聚合流水线

模块划分:
- models.py: 数据模型
- registry.py: 注册表解析与描述符加载
- resolver.py: 拉取地址解析
- fetcher.py: 远端拉取 + 重试策略
- classifier.py: 内容校验与分类
- assembler.py: 按声明顺序汇编
"""

from pkgdocs.core.docs.assembler import assemble
from pkgdocs.core.docs.classifier import classify
from pkgdocs.core.docs.fetcher import Fetcher, RetryPolicy
from pkgdocs.core.docs.models import (
    AssemblyManifest,
    FetchResult,
    FetchStatus,
    PackageDescriptor,
    Registry,
)
from pkgdocs.core.docs.registry import load_descriptors, parse_registry_text, read_registry
from pkgdocs.core.docs.resolver import UrlTemplate, resolve

__all__ = [
    "AssemblyManifest",
    "FetchResult",
    "FetchStatus",
    "Fetcher",
    "PackageDescriptor",
    "Registry",
    "RetryPolicy",
    "UrlTemplate",
    "assemble",
    "classify",
    "load_descriptors",
    "parse_registry_text",
    "read_registry",
    "resolve",
]
