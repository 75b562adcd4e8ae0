"""Payable action channels: registry and unsigned payment builder."""

__version__ = "0.1.0"
