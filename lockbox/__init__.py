"""Lockbox — encrypted-at-rest secret files tracked in a box."""

__version__ = "0.1.0"
