"""CLI module for the artwork toolkit."""

from .commands import RefreshCommands, UtilityCommands
from .main import ArtworkToolkitCLI

__all__ = [
    "ArtworkToolkitCLI",
    "RefreshCommands",
    "UtilityCommands",
]
