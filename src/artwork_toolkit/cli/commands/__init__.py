"""CLI command modules."""

from .refresh import RefreshCommands
from .utils import UtilityCommands

__all__ = ["RefreshCommands", "UtilityCommands"]
