"""
git-sync-keeper - Keep a local clone, a Core mirror and a GitHub backup in step
"""

from .__version__ import __version__
from .core import SyncKeeper, detect, suggest_fixes, auto_fix
from .cli.main import main

__all__ = ["SyncKeeper", "detect", "suggest_fixes", "auto_fix", "main", "__version__"]
