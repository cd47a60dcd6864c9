"""Task market service: task lifecycle, bids, verification and trust scores."""

__version__ = "0.1.0"
