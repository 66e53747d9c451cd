"""Saved authentication state: loading, inspection and capture.

A snapshot has the Playwright storage-state layout::

    {"cookies": [...], "origins": [{"origin": "...", "localStorage": [{"name": ..., "value": ...}]}]}

inspect_auth_state() answers "can a run start logged in with this file?"
and capture_auth_state() produces a new snapshot after a manual sign-in in
a headed browser.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from playwright.async_api import Page
from pydantic import BaseModel, Field

from ..exceptions import HarnessError, LocatorNotFound, StepTimeout

logger = logging.getLogger(__name__)


class AuthStateError(HarnessError):
    """Raised when a snapshot file is missing or malformed."""

    pass


class StorageItem(BaseModel):
    name: str
    value: str


class OriginStorage(BaseModel):
    origin: str
    local_storage: List[StorageItem] = Field(default_factory=list, alias="localStorage")

    class Config:
        populate_by_name = True


class AuthState(BaseModel):
    """Cookies and per-origin localStorage of a browser context."""

    cookies: List[Dict[str, Any]] = Field(default_factory=list)
    origins: List[OriginStorage] = Field(default_factory=list)

    def to_storage_state(self) -> Dict[str, Any]:
        """Form accepted by Playwright's ``new_context(storage_state=...)``."""
        return {
            "cookies": list(self.cookies),
            "origins": [o.model_dump(by_alias=True) for o in self.origins],
        }


class AuthStateStatus(BaseModel):
    """Result of inspecting a snapshot."""

    valid: bool
    reason: Optional[str] = None
    origin: Optional[str] = None
    expires_at: Optional[datetime] = None
    minutes_left: Optional[int] = None


def load_auth_state(path: Union[str, Path]) -> AuthState:
    """Read and parse a snapshot file.

    Raises:
        AuthStateError: If the file is missing, unreadable or malformed
    """
    target = Path(path)
    if not target.is_file():
        raise AuthStateError(f"No auth file found at {target}")
    try:
        raw = json.loads(target.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise AuthStateError(f"Cannot read auth file {target}: {e}") from e
    if not isinstance(raw, dict):
        raise AuthStateError(f"Auth file {target} is not a JSON object")
    try:
        return AuthState(**raw)
    except ValueError as e:
        raise AuthStateError(f"Auth file {target} has an unexpected layout: {e}") from e


def inspect_auth_state(
    path: Union[str, Path],
    token_key: str = "auth-token",
    origin_filter: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AuthStateStatus:
    """Check whether a snapshot still holds a usable session token.

    The token is the first localStorage entry whose name contains
    ``token_key``; its value is expected to be JSON with an ``expires_at``
    epoch-seconds field (Supabase-style sessions).

    Args:
        path: Snapshot file
        token_key: Substring identifying the token entry
        origin_filter: Only consider origins containing this substring
        now: Reference time (defaults to the current time)

    Returns:
        AuthStateStatus describing validity and remaining lifetime
    """
    try:
        state = load_auth_state(path)
    except AuthStateError as e:
        return AuthStateStatus(valid=False, reason=str(e))

    origins = [
        o for o in state.origins if not origin_filter or origin_filter in o.origin
    ]
    origins = [o for o in origins if o.local_storage]
    if not origins:
        return AuthStateStatus(valid=False, reason="No localStorage data")

    for origin in origins:
        token = next((i for i in origin.local_storage if token_key in i.name), None)
        if token is None:
            continue
        return _check_token(origin.origin, token.value, now or datetime.now())

    return AuthStateStatus(valid=False, reason="No auth token found")


def _check_token(origin: str, raw_value: str, now: datetime) -> AuthStateStatus:
    try:
        token = json.loads(raw_value)
        expires_at = datetime.fromtimestamp(float(token["expires_at"]))
    except (ValueError, TypeError, KeyError) as e:
        return AuthStateStatus(
            valid=False, origin=origin, reason=f"Unreadable auth token: {e}"
        )

    seconds_left = (expires_at - now).total_seconds()
    if seconds_left <= 0:
        return AuthStateStatus(
            valid=False, origin=origin, expires_at=expires_at, reason="Token expired"
        )
    return AuthStateStatus(
        valid=True,
        origin=origin,
        expires_at=expires_at,
        minutes_left=int(seconds_left // 60),
    )


async def capture_auth_state(
    session: Any,
    page: Page,
    url: str,
    path: Union[str, Path],
    resolver: Any = None,
    indicators: Any = None,
    storage_key: Optional[str] = None,
    timeout_ms: int = 300_000,
    poll_interval_ms: int = 1_000,
) -> Path:
    """Wait for a manual sign-in, then persist the session's auth state.

    Signed-in is detected when the ``indicators`` locator chain resolves
    (through ``resolver``) or when a localStorage key containing
    ``storage_key`` appears, whichever comes first.

    Args:
        session: Open BrowserSession that owns ``page``
        page: Page used for signing in
        url: App URL to open
        path: Where to write the snapshot
        resolver: ElementLocatorChain used for ``indicators``
        indicators: LocatorChain of elements only shown to signed-in users
        storage_key: Substring of a localStorage key set after sign-in
        timeout_ms: How long to wait for the sign-in
        poll_interval_ms: Delay between checks

    Returns:
        Path of the written snapshot

    Raises:
        StepTimeout: If no sign-in was detected in time
    """
    from ..runner.conditions import poll_until

    if indicators is None and storage_key is None:
        raise ValueError("capture_auth_state needs indicators or a storage_key")

    logger.info(f"Opening {url} for manual sign-in")
    await page.goto(url)

    async def signed_in() -> bool:
        if indicators is not None and resolver is not None:
            try:
                await resolver.resolve(page, indicators)
                return True
            except LocatorNotFound:
                pass
        if storage_key is not None:
            found = await page.evaluate(
                "(key) => Object.keys(window.localStorage).some(k => k.includes(key))",
                storage_key,
            )
            if found:
                return True
        return False

    try:
        await poll_until(signed_in, timeout_ms, poll_interval_ms)
    except StepTimeout:
        raise StepTimeout(
            f"No sign-in detected within {timeout_ms / 1000:.0f}s", timeout_ms
        ) from None

    logger.info("Sign-in detected, saving auth state")
    return await session.persist_auth_state(path)
