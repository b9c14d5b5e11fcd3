"""Multi-chain EVM wallet session client."""

__version__ = "0.3.0"
