"""Command line interface for smart-release."""
