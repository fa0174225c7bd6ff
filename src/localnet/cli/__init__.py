"""
Command-line interface for the localnet package.

This module provides the main CLI entry point for the devnet orchestrator.
"""

from .main import main_cli

__all__ = [
    "main_cli",
]
