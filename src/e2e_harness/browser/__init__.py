"""Browser lifecycle, element resolution and diagnostics.

This package provides:
- BrowserSession: browser/context/page lifecycle with auth-state restore
- ElementLocatorChain: ordered fallback resolution of target elements
- DiagnosticsCollector: console and network problems seen on each page
- Auth-state loading, inspection and capture helpers
"""

from .auth_state import (
    AuthState,
    AuthStateError,
    AuthStateStatus,
    capture_auth_state,
    inspect_auth_state,
    load_auth_state,
)
from .diagnostics import DiagnosticsCollector
from .locator_chain import ElementLocatorChain, LocatorResolution
from .session import BrowserSession

__all__ = [
    "BrowserSession",
    "ElementLocatorChain",
    "LocatorResolution",
    "DiagnosticsCollector",
    "AuthState",
    "AuthStateError",
    "AuthStateStatus",
    "load_auth_state",
    "inspect_auth_state",
    "capture_auth_state",
]
