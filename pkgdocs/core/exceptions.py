"""统一异常体系

所有致命错误继承 PkgDocsError；CLI 层据此输出单条致命原因并以非零退出。
单个包的拉取失败（NOT_FOUND / TRANSIENT_ERROR / INVALID）不是异常，
而是 FetchResult / ErrorRecord 上的状态值，不会中断其它包的拉取。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pkgdocs.core.docs.models import ErrorRecord


class PkgDocsError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(PkgDocsError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(PkgDocsError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"


class MalformedRegistry(PkgDocsError):
    """注册表无法解析：缺少 rev、重名、字段类型错误或 TOML 语法错误"""

    code = "MALFORMED_REGISTRY"


class AggregationIncomplete(PkgDocsError):
    """严格模式下存在拉取/校验失败的包"""

    code = "AGGREGATION_INCOMPLETE"

    def __init__(self, errors: tuple[ErrorRecord, ...]) -> None:
        names = ", ".join(e.name for e in errors)
        super().__init__(f"严格模式: {len(errors)} 个包聚合失败 ({names})")
        self.errors = errors
