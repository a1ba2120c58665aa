"""Dropline: token-addressed file transfers with per-recipient key envelopes."""

__version__ = "0.1.0"
