"""聚合流水线测试 - 假 transport 下的端到端行为"""

from __future__ import annotations

import threading
import time

import pytest

from pkgdocs.core.aggregator import Aggregator
from pkgdocs.core.config import RunContext
from pkgdocs.core.docs.fetcher import Fetcher, HttpResponse
from pkgdocs.core.docs.models import FetchStatus
from pkgdocs.core.docs.registry import load_descriptors, parse_registry_text
from pkgdocs.core.exceptions import AggregationIncomplete, MalformedRegistry
from pkgdocs.core.limiter import FetchLimiter


def _context(text: str, **kwargs: object) -> RunContext:
    registry = load_descriptors(parse_registry_text(text))
    return RunContext(registry=registry, **kwargs)  # type: ignore[arg-type]


def _aggregator(ctx: RunContext, transport, clock, limiter: FetchLimiter | None = None) -> Aggregator:
    fetcher = Fetcher(transport=transport, retry=ctx.retry, sleep=clock.sleep)
    return Aggregator(ctx, fetcher=fetcher, limiter=limiter)


def _registry(names: list[str]) -> str:
    return "".join(f'[{n}]\n    rev = "v1.{i}"\n' for i, n in enumerate(names))


class TestExampleRun:
    """[A] 成功、[B] 404、[C] 停用"""

    def test_non_strict(self, sample_registry_text: str, make_transport, clock) -> None:
        transport = make_transport({"B": [HttpResponse(status=404)]})
        report = _aggregator(_context(sample_registry_text), transport, clock).run()

        m = report.manifest
        assert m.titles("solvers") == ["A"]
        assert m.titles("extensions") == []
        assert [(e.name, e.status) for e in m.errors] == [("B", FetchStatus.NOT_FOUND)]
        assert report.disabled == ("C",)
        assert set(report.results) == {"A", "B"}
        assert transport.count("C") == 0
        assert transport.count("B") == 1

    def test_strict(self, sample_registry_text: str, make_transport, clock) -> None:
        transport = make_transport({"B": [HttpResponse(status=404)]})
        ctx = _context(sample_registry_text, strict=True)
        with pytest.raises(AggregationIncomplete) as exc_info:
            _aggregator(ctx, transport, clock).run()
        assert [e.name for e in exc_info.value.errors] == ["B"]

    def test_all_success_is_classified(self, sample_registry_text: str, make_transport, clock) -> None:
        report = _aggregator(_context(sample_registry_text), make_transport(), clock).run()
        assert report.manifest.titles("solvers") == ["A"]
        assert report.manifest.titles("extensions") == ["B"]
        assert report.manifest.errors == ()


class TestOrdering:
    def test_reverse_completion_keeps_declaration_order(self, make_transport, clock) -> None:
        names = ["P0", "P1", "P2", "P3", "P4"]
        finished = {n: threading.Event() for n in names}

        def before(name: str) -> None:
            # 每个包等待后一个包完成，使完成顺序与声明顺序相反
            idx = names.index(name)
            if idx + 1 < len(names):
                assert finished[names[idx + 1]].wait(timeout=5)

        transport = make_transport(before=before, after=lambda n: finished[n].set())
        ctx = _context(_registry(names), max_concurrency=len(names))
        report = _aggregator(ctx, transport, clock).run()

        completed = [url.split("/")[4].rsplit(".", 1)[0] for url in transport.calls]
        assert completed == list(reversed(names))
        assert report.manifest.titles("solvers") == names

    def test_sections_interleaved_in_registry(self, make_transport, clock) -> None:
        text = (
            '[S1]\n    rev = "v1"\n'
            '[E1]\n    rev = "v1"\n    extension = true\n'
            '# [Off]\n#   user = "x"\n'
            '[S2]\n    rev = "v1"\n'
            '[E2]\n    rev = "v1"\n    extension = true\n'
        )
        report = _aggregator(_context(text), make_transport(), clock).run()
        assert report.manifest.titles("solvers") == ["S1", "S2"]
        assert report.manifest.titles("extensions") == ["E1", "E2"]


class TestConcurrency:
    def test_in_flight_bounded(self, make_transport, clock) -> None:
        names = [f"P{i}" for i in range(8)]
        transport = make_transport(before=lambda _n: time.sleep(0.02))
        limiter = FetchLimiter(capacity=2)
        ctx = _context(_registry(names), max_concurrency=2)
        report = _aggregator(ctx, transport, clock, limiter=limiter).run()

        assert report.manifest.size == 8
        assert limiter.status().peak <= 2
        assert limiter.status().in_use == 0

    def test_run_timeout_cancels_pending(self, make_transport, clock) -> None:
        release = threading.Event()

        def before(name: str) -> None:
            if name == "Slow":
                release.wait(timeout=5)

        transport = make_transport(before=before)
        ctx = _context(_registry(["Fast", "Slow"]), run_timeout=0.2, max_concurrency=2)
        try:
            report = _aggregator(ctx, transport, clock).run()
        finally:
            release.set()

        m = report.manifest
        assert m.titles("solvers") == ["Fast"]
        assert [(e.name, e.status) for e in m.errors] == [("Slow", FetchStatus.TRANSIENT_ERROR)]
        assert "超时" in m.errors[0].reason


class TestPerPackageFailures:
    def test_transient_retry_then_success(self, sample_registry_text: str, make_transport, clock) -> None:
        transport = make_transport({"A": [HttpResponse(status=503)]})
        report = _aggregator(_context(sample_registry_text), transport, clock).run()
        assert report.manifest.titles("solvers") == ["A"]
        assert report.results["A"].attempts == 2
        assert clock.sleeps == [1.0]

    def test_invalid_content(self, sample_registry_text: str, make_transport, clock) -> None:
        transport = make_transport({"A": [HttpResponse(status=200, body=b"")]})
        report = _aggregator(_context(sample_registry_text), transport, clock).run()
        assert report.results["A"].status is FetchStatus.SUCCESS
        assert [(e.name, e.status) for e in report.manifest.errors] == [("A", FetchStatus.INVALID)]
        assert report.manifest.titles("extensions") == ["B"]

    def test_failure_does_not_abort_siblings(self, make_transport, clock) -> None:
        transport = make_transport({"P1": [OSError("down")] * 3})
        report = _aggregator(_context(_registry(["P0", "P1", "P2"])), transport, clock).run()
        assert report.manifest.titles("solvers") == ["P0", "P2"]
        assert [e.name for e in report.manifest.errors] == ["P1"]


def test_missing_rev_means_no_fetch(make_transport) -> None:
    transport = make_transport()
    with pytest.raises(MalformedRegistry):
        _context('[A]\n    rev = "v1"\n[B]\n    user = "x"\n')
    assert transport.calls == []


def test_empty_registry(make_transport, clock) -> None:
    report = _aggregator(_context("# nothing\n"), make_transport(), clock).run()
    assert report.manifest.size == 0
    assert report.results == {}
