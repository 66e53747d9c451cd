"""Fallback-chain element resolution.

The target app has no stable test ids, so a step names its element with an
ordered chain of candidate strategies (CSS, text, ARIA role, ARIA label,
attribute pattern). ElementLocatorChain tries them in order and returns the
first one that yields a visible, enabled element.

PATTERN: Try strategies in priority order, validate against the live page
CRITICAL: Resolution must be deterministic for a given DOM state
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from ..exceptions import LocatorNotFound
from ..models.harness_models import (
    AttributeMatch,
    LocatorCandidate,
    LocatorChain,
    LocatorStrategy,
)

logger = logging.getLogger(__name__)

_ATTRIBUTE_OPERATORS = {
    AttributeMatch.EQUALS: "=",
    AttributeMatch.CONTAINS: "*=",
    AttributeMatch.PREFIX: "^=",
    AttributeMatch.SUFFIX: "$=",
}


@dataclass
class LocatorResolution:
    """The element a chain resolved to and how it got there."""

    locator: Locator
    candidate: LocatorCandidate
    candidate_index: int
    match_count: int
    warnings: List[str] = field(default_factory=list)

    @property
    def ambiguous(self) -> bool:
        return self.match_count > 1


class ElementLocatorChain:
    """Resolve locator chains against a page.

    For each candidate, in declared order:
    1. query every match on the page
    2. keep matches that are visible (non-empty box, not hidden) and enabled
    3. one left -> resolved; several -> first in document order, with a warning
    4. none left -> next candidate

    Elements inside closed shadow roots or cross-origin iframes are not
    searched; popups and new windows are separate pages.
    """

    def __init__(self, poll_interval_ms: int = 250):
        """Initialize the resolver.

        Args:
            poll_interval_ms: Delay between attempts in wait_for()
        """
        self.poll_interval_ms = poll_interval_ms

    def build_locator(self, page: Page, candidate: LocatorCandidate) -> Locator:
        """Translate a candidate into a Playwright locator.

        Args:
            page: Page to search
            candidate: Candidate strategy

        Returns:
            Locator matching every element the candidate describes
        """
        if candidate.strategy == LocatorStrategy.CSS:
            return page.locator(candidate.value)

        if candidate.strategy == LocatorStrategy.TEXT:
            if candidate.tag:
                pattern = re.compile(re.escape(candidate.value), re.IGNORECASE)
                return page.locator(candidate.tag).filter(has_text=pattern)
            # get_by_text without exact=True is a case-insensitive substring match
            return page.get_by_text(candidate.value)

        if candidate.strategy == LocatorStrategy.ROLE:
            if candidate.name:
                return page.get_by_role(candidate.value, name=candidate.name)
            return page.get_by_role(candidate.value)

        if candidate.strategy == LocatorStrategy.LABEL:
            return page.get_by_label(candidate.value)

        operator = _ATTRIBUTE_OPERATORS[candidate.match]
        escaped = candidate.value.replace("\\", "\\\\").replace('"', '\\"')
        return page.locator(f'[{candidate.attribute}{operator}"{escaped}"]')

    async def resolve(self, page: Page, chain: LocatorChain) -> LocatorResolution:
        """Resolve a chain once against the current DOM.

        Args:
            page: Page to search
            chain: Candidates in priority order

        Returns:
            LocatorResolution for the winning candidate

        Raises:
            LocatorNotFound: If no candidate yields a visible, enabled element
        """
        for index, candidate in enumerate(chain.candidates):
            try:
                locator = self.build_locator(page, candidate)
                matches = await self._interactable_indices(locator)
            except PlaywrightError as e:
                logger.debug(f"Candidate {candidate.describe()} failed: {e}")
                continue

            if not matches:
                logger.debug(f"Candidate {candidate.describe()} matched nothing usable")
                continue

            warnings: List[str] = []
            if len(matches) > 1:
                message = (
                    f"Ambiguous locator {candidate.describe()}: "
                    f"{len(matches)} visible matches, using the first"
                )
                logger.warning(message)
                warnings.append(message)

            logger.debug(f"Resolved {chain.describe()} via {candidate.describe()}")
            return LocatorResolution(
                locator=locator.nth(matches[0]),
                candidate=candidate,
                candidate_index=index,
                match_count=len(matches),
                warnings=warnings,
            )

        raise LocatorNotFound(chain.describe(), _page_url(page))

    async def wait_for(
        self, page: Page, chain: LocatorChain, timeout_ms: int
    ) -> LocatorResolution:
        """Resolve a chain, retrying until it succeeds or time runs out.

        At least one attempt is always made.

        Raises:
            LocatorNotFound: If the chain never resolved within ``timeout_ms``
        """
        deadline = time.monotonic() + max(timeout_ms, 0) / 1000
        while True:
            try:
                return await self.resolve(page, chain)
            except LocatorNotFound:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise
                await asyncio.sleep(min(self.poll_interval_ms / 1000, remaining))

    async def _interactable_indices(self, locator: Locator) -> List[int]:
        indices: List[int] = []
        count = await locator.count()
        for i in range(count):
            element = locator.nth(i)
            try:
                if await element.is_visible() and await element.is_enabled():
                    indices.append(i)
            except PlaywrightError as e:
                # Element detached between count() and the checks
                logger.debug(f"Skipping match {i}: {e}")
        return indices


def _page_url(page: Page) -> Optional[str]:
    try:
        return page.url
    except Exception:
        return None
