"""smart-release: release bookkeeping with a changelog that survives hand edits."""

from __future__ import annotations

__version__ = "0.1.0"
