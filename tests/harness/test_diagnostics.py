"""Tests for DiagnosticsCollector."""

from types import SimpleNamespace

from e2e_harness.browser.diagnostics import DiagnosticsCollector


def _fire(page, event, payload):
    for handler in page.handlers.get(event, []):
        handler(payload)


def test_records_tagged_entries(make_page):
    collector = DiagnosticsCollector()
    page = make_page()
    collector.attach(page, "debug")

    _fire(page, "console", SimpleNamespace(type="log", text="hello"))
    _fire(page, "console", SimpleNamespace(type="error", text="Uncaught TypeError"))
    _fire(page, "pageerror", SimpleNamespace(message="boom"))
    _fire(page, "requestfailed", SimpleNamespace(method="GET", url="https://x/a", failure="net::ERR_FAILED"))
    _fire(page, "response", SimpleNamespace(status=200, url="https://x/ok"))
    _fire(page, "response", SimpleNamespace(status=500, url="https://x/err"))

    kinds = [e.kind for e in collector.entries]
    assert kinds == ["console", "pageerror", "requestfailed", "response"]
    assert all(e.page == "debug" for e in collector.entries)
    assert collector.entries[3].status == 500
    assert collector.entries[2].message == "GET https://x/a: net::ERR_FAILED"


def test_ignored_patterns_and_errors(make_page):
    collector = DiagnosticsCollector(ignored_patterns=["favicon"])
    page = make_page()
    collector.attach(page, "main")

    _fire(page, "response", SimpleNamespace(status=404, url="https://x/favicon.ico"))
    _fire(page, "console", SimpleNamespace(type="warning", text="deprecated API"))
    _fire(page, "console", SimpleNamespace(type="error", text="failed"))

    assert len(collector.entries) == 2
    assert [e.message for e in collector.errors()] == ["failed"]
