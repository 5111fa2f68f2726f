"""print-relay: field agent that prints jobs received from a relay server."""

__version__ = "0.1.0"
