"""Tests for condition polling."""

import asyncio
import time

import pytest

from e2e_harness.browser.locator_chain import ElementLocatorChain
from e2e_harness.exceptions import StepTimeout
from e2e_harness.models.harness_models import ConditionKind, LocatorChain, WaitCondition
from e2e_harness.runner.conditions import ConditionChecker, poll_until


@pytest.fixture
def checker():
    return ConditionChecker(ElementLocatorChain(poll_interval_ms=10))


class TestPollUntil:
    """Tests for poll_until."""

    @pytest.mark.asyncio
    async def test_returns_as_soon_as_condition_holds(self):
        calls = []

        async def check():
            calls.append(1)
            return len(calls) >= 3

        elapsed = await poll_until(check, timeout_ms=5000, poll_interval_ms=10)

        assert len(calls) == 3
        assert elapsed < 1

    @pytest.mark.asyncio
    async def test_times_out(self):
        async def never():
            return False

        start = time.monotonic()
        with pytest.raises(StepTimeout, match="waiting for the moon"):
            await poll_until(never, timeout_ms=50, poll_interval_ms=10, description="the moon")
        assert time.monotonic() - start < 1


class TestConditionChecker:
    """Tests for individual condition kinds."""

    @pytest.mark.asyncio
    async def test_text_and_text_absent(self, checker, make_page):
        page = make_page(body_text="Migrations: 0 pending")

        assert await checker.check(page, WaitCondition(kind=ConditionKind.TEXT, value="0 pending"))
        assert not await checker.check(page, WaitCondition(kind=ConditionKind.TEXT_ABSENT, value="pending"))

    @pytest.mark.asyncio
    async def test_url_pattern(self, checker, make_page):
        page = make_page(url="https://example.test/dashboard?tab=1")

        assert await checker.check(page, WaitCondition(kind=ConditionKind.URL, value=r"/dashboard"))
        assert not await checker.check(page, WaitCondition(kind=ConditionKind.URL, value=r"/login$"))

    @pytest.mark.asyncio
    async def test_script(self, checker, make_page):
        page = make_page()
        page.scripts["() => window.appReady"] = True

        assert await checker.check(page, WaitCondition(kind=ConditionKind.SCRIPT, value="() => window.appReady"))

    @pytest.mark.asyncio
    async def test_element_and_element_absent(self, checker, make_page, make_element):
        page = make_page()
        chain = LocatorChain.parse("css:#spinner")
        present = WaitCondition(kind=ConditionKind.ELEMENT, target=chain)
        absent = WaitCondition(kind=ConditionKind.ELEMENT_ABSENT, target=chain)

        assert not await checker.check(page, present)
        assert await checker.check(page, absent)

        page.add_css("#spinner", make_element())
        assert await checker.check(page, present)
        assert not await checker.check(page, absent)

    @pytest.mark.asyncio
    async def test_wait_returns_early(self, checker, make_page):
        page = make_page()
        asyncio.get_running_loop().call_later(0.05, setattr, page, "body_text", "Done")

        waited = await checker.wait(
            page, WaitCondition(kind=ConditionKind.TEXT, value="Done"), 2000, 10
        )

        assert waited < 1

    @pytest.mark.asyncio
    async def test_wait_uses_chain_from_condition(self, checker, make_page, make_element):
        page = make_page()
        condition = WaitCondition(kind=ConditionKind.ELEMENT, target=LocatorChain.parse("css:#toast"))
        asyncio.get_running_loop().call_later(0.05, page.add_css, "#toast", make_element("Saved"))

        waited = await checker.wait(page, condition, 2000, 10)

        assert waited < 1
        assert checker.describe(condition) == "element [css:#toast]"
