"""文档聚合数据模型

数据类:
- PackageDescriptor: 注册表中的单个包条目（加载后不可变）
- Registry: 按声明顺序保存的描述符集合
- FetchLocation / FetchResult: 拉取地址与拉取结果
- Classification / ErrorRecord: 分类结果
- ManifestEntry / AssemblyManifest: 聚合输出
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Union

DEFAULT_OWNER = "jump-dev"
DEFAULT_FILENAME = "README.md"

SECTION_SOLVERS = "solvers"
SECTION_EXTENSIONS = "extensions"


class FetchStatus(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    TRANSIENT_ERROR = "transient_error"
    INVALID = "invalid"


@dataclass(frozen=True)
class PackageDescriptor:
    """单个外部包的注册信息"""

    name: str
    revision: str = ""
    owner: str = DEFAULT_OWNER
    is_extension: bool = False
    has_rich_content: bool = False  # 内容含需原样透传的 HTML
    target_filename: str = DEFAULT_FILENAME
    enabled: bool = True

    @property
    def section(self) -> str:
        return SECTION_EXTENSIONS if self.is_extension else SECTION_SOLVERS


@dataclass(frozen=True)
class Registry:
    """描述符集合，保持注册表声明顺序"""

    descriptors: tuple[PackageDescriptor, ...] = ()

    def __iter__(self) -> Iterator[PackageDescriptor]:
        return iter(self.descriptors)

    def __len__(self) -> int:
        return len(self.descriptors)

    def enabled(self) -> tuple[PackageDescriptor, ...]:
        return tuple(d for d in self.descriptors if d.enabled)

    def disabled(self) -> tuple[PackageDescriptor, ...]:
        return tuple(d for d in self.descriptors if not d.enabled)

    def get(self, name: str) -> PackageDescriptor | None:
        for d in self.descriptors:
            if d.name == name:
                return d
        return None


@dataclass(frozen=True)
class FetchLocation:
    """已解析的拉取地址"""

    url: str
    descriptor: PackageDescriptor


@dataclass(frozen=True)
class FetchResult:
    """单次拉取结果；content 仅在 SUCCESS 时存在"""

    descriptor: PackageDescriptor
    status: FetchStatus
    content: bytes | None = None
    reason: str = ""
    attempts: int = 0


@dataclass(frozen=True)
class Classification:
    """成功分类：归入 solvers 或 extensions"""

    descriptor: PackageDescriptor
    section: str
    text: str


@dataclass(frozen=True)
class ErrorRecord:
    """单个包的失败记录"""

    name: str
    status: FetchStatus
    reason: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "status": self.status.value, "reason": self.reason}


Outcome = Union[Classification, ErrorRecord]


@dataclass(frozen=True)
class ManifestEntry:
    title: str
    content: str
    descriptor: PackageDescriptor


@dataclass(frozen=True)
class AssemblyManifest:
    """聚合输出：两个有序章节 + 错误列表"""

    solvers: tuple[ManifestEntry, ...] = ()
    extensions: tuple[ManifestEntry, ...] = ()
    errors: tuple[ErrorRecord, ...] = field(default_factory=tuple)

    @property
    def size(self) -> int:
        return len(self.solvers) + len(self.extensions)

    def titles(self, section: str) -> list[str]:
        entries = self.solvers if section == SECTION_SOLVERS else self.extensions
        return [e.title for e in entries]
