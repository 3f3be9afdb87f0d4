"""Shared type aliases for LeakProbe."""

from __future__ import annotations

# Target endpoint (host, port).
Address = tuple[str, int]
