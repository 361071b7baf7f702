"""汇编器测试 - 顺序、分组、严格模式"""

from __future__ import annotations

import pytest

from pkgdocs.core.docs.assembler import assemble
from pkgdocs.core.docs.models import (
    Classification,
    ErrorRecord,
    FetchStatus,
    Outcome,
    PackageDescriptor,
)
from pkgdocs.core.exceptions import AggregationIncomplete

A = PackageDescriptor(name="A", revision="v1.0")
B = PackageDescriptor(name="B", revision="v2.0", is_extension=True)
C = PackageDescriptor(name="C", enabled=False)
D = PackageDescriptor(name="D", revision="v3.0")
E = PackageDescriptor(name="E", revision="v4.0", is_extension=True)


def _ok(desc: PackageDescriptor) -> Classification:
    return Classification(descriptor=desc, section=desc.section, text=f"# {desc.name}\n")


class TestAssemble:
    def test_order_follows_declaration(self) -> None:
        # 字典插入顺序故意与声明顺序相反
        outcomes: dict[str, Outcome] = {d.name: _ok(d) for d in (E, D, B, A)}
        manifest = assemble([A, B, C, D, E], outcomes)
        assert manifest.titles("solvers") == ["A", "D"]
        assert manifest.titles("extensions") == ["B", "E"]
        assert manifest.errors == ()
        assert manifest.size == 4

    def test_errors_collected(self) -> None:
        err = ErrorRecord(name="B", status=FetchStatus.NOT_FOUND, reason="HTTP 404")
        manifest = assemble([A, B, C], {"A": _ok(A), "B": err})
        assert manifest.titles("solvers") == ["A"]
        assert manifest.extensions == ()
        assert manifest.errors == (err,)

    def test_disabled_absent_everywhere(self) -> None:
        manifest = assemble([A, C], {"A": _ok(A)})
        names = (
            manifest.titles("solvers") + manifest.titles("extensions")
            + [e.name for e in manifest.errors]
        )
        assert "C" not in names

    def test_missing_outcome_never_dropped(self) -> None:
        manifest = assemble([A, D], {"A": _ok(A)})
        assert [(e.name, e.status) for e in manifest.errors] == [("D", FetchStatus.TRANSIENT_ERROR)]

    def test_entry_content(self) -> None:
        manifest = assemble([A], {"A": _ok(A)})
        entry = manifest.solvers[0]
        assert entry.title == "A"
        assert entry.content == "# A\n"
        assert entry.descriptor is A

    def test_strict_raises(self) -> None:
        err = ErrorRecord(name="B", status=FetchStatus.NOT_FOUND)
        with pytest.raises(AggregationIncomplete) as exc_info:
            assemble([A, B], {"A": _ok(A), "B": err}, strict=True)
        assert exc_info.value.errors == (err,)
        assert "B" in str(exc_info.value)

    def test_strict_without_errors(self) -> None:
        manifest = assemble([A, B], {"A": _ok(A), "B": _ok(B)}, strict=True)
        assert manifest.size == 2
