"""共享 fixture - 假 transport、假时钟、样例注册表

假 transport 按包名预置响应序列，无需真实网络；
假时钟只记录 sleep 时长，重试测试不产生真实等待。
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Union

import pytest

from pkgdocs.core.docs.fetcher import HttpResponse

SAMPLE_REGISTRY = """\
# Each element in this TOML file has the format:
#
# [PackageName]
#    user = "jump-dev"
#    rev = ""

[A]
    rev = "v1.0"
[B]
    rev = "v2.0"
    extension = true
# [C]
#   user = "someone"
"""

Reply = Union[HttpResponse, Exception]


def package_of(url: str) -> str:
    """https://host/owner/<name>.jl/rev/file -> name"""
    return url.split("/")[4].rsplit(".", 1)[0]


class FakeTransport:
    """按包名预置响应序列；序列用完或未预置时返回 default"""

    def __init__(
        self,
        responses: dict[str, list[Reply]] | None = None,
        default: Reply | None = None,
        before: Callable[[str], None] | None = None,
        after: Callable[[str], None] | None = None,
    ) -> None:
        self.responses = {name: list(seq) for name, seq in (responses or {}).items()}
        self.default = default or HttpResponse(status=200, body=b"# README\n\ncontent\n")
        self.before = before
        self.after = after
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, url: str, timeout: float) -> HttpResponse:
        name = package_of(url)
        if self.before is not None:
            self.before(name)
        with self._lock:
            self.calls.append(url)
            seq = self.responses.get(name)
            reply = seq.pop(0) if seq else self.default
        if self.after is not None:
            self.after(name)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def count(self, name: str) -> int:
        return sum(1 for url in self.calls if package_of(url) == name)


class FakeClock:
    def __init__(self) -> None:
        self.sleeps: list[float] = []

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)


@pytest.fixture()
def make_transport() -> type[FakeTransport]:
    return FakeTransport


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def registry_file(tmp_path: Path) -> Path:
    path = tmp_path / "packages.toml"
    path.write_text(SAMPLE_REGISTRY, encoding="utf-8")
    return path


@pytest.fixture()
def sample_registry_text() -> str:
    return SAMPLE_REGISTRY
