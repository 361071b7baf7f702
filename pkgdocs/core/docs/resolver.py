"""引用解析器

将描述符组合为确定的拉取地址（纯函数，不触发任何网络请求）:

    https://<host>/<owner>/<name>.<suffix>/<revision>/<filename>

同一描述符总是得到同一地址；rev 固定为不可变引用，使拉取结果可复现。
"""

from __future__ import annotations

from dataclasses import dataclass

from pkgdocs.core.docs.models import FetchLocation, PackageDescriptor
from pkgdocs.utils.net import validate_url_scheme

FETCH_URL_TEMPLATE = "https://{host}/{owner}/{name}.{suffix}/{revision}/{filename}"
EDIT_URL_TEMPLATE = "https://{host}/{owner}/{name}.{suffix}/blob/{revision}/{filename}"


@dataclass(frozen=True)
class UrlTemplate:
    """远端地址参数"""

    host: str = "raw.githubusercontent.com"
    blob_host: str = "github.com"
    suffix: str = "jl"

    def _params(self, desc: PackageDescriptor, host: str) -> dict[str, str]:
        return {
            "host": host,
            "owner": desc.owner,
            "name": desc.name,
            "suffix": self.suffix,
            "revision": desc.revision,
            "filename": desc.target_filename,
        }

    def fetch_url(self, desc: PackageDescriptor) -> str:
        return FETCH_URL_TEMPLATE.format(**self._params(desc, self.host))

    def edit_url(self, desc: PackageDescriptor) -> str:
        return EDIT_URL_TEMPLATE.format(**self._params(desc, self.blob_host))


DEFAULT_TEMPLATE = UrlTemplate()


def resolve(
    desc: PackageDescriptor, template: UrlTemplate = DEFAULT_TEMPLATE,
) -> FetchLocation:
    """解析描述符的拉取地址

    Raises:
        ValueError: 描述符已停用或缺少 revision
        ValidationError: 模板生成了非 http/https 地址
    """
    if not desc.enabled:
        raise ValueError(f"包 '{desc.name}' 已停用，不参与解析")
    if not desc.revision:
        raise ValueError(f"包 '{desc.name}' 缺少 revision")
    url = template.fetch_url(desc)
    validate_url_scheme(url, context=f"fetch {desc.name}")
    return FetchLocation(url=url, descriptor=desc)


def edit_url(desc: PackageDescriptor, template: UrlTemplate = DEFAULT_TEMPLATE) -> str:
    """上游源文件的浏览地址，写入生成页面的 EditURL"""
    return template.edit_url(desc)
