"""Backend verification that runs next to the browser steps."""

from .endpoint_probe import EndpointProbe

__all__ = ["EndpointProbe"]
