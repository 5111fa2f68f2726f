"""Error taxonomy shared by the relay link and the job pipeline."""

from __future__ import annotations


class RelayError(RuntimeError):
    """Base class for print-relay failures."""


class ConfigurationError(RelayError):
    """Missing company or credential; needs operator action."""


class TransportError(RelayError):
    """The relay websocket could not be opened."""


class ProtocolError(RelayError):
    """An inbound relay message could not be decoded."""


class RenderError(RelayError):
    """A job could not be rendered or submitted to the output device."""
