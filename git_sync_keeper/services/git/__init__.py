"""Git access for git-sync-keeper."""

from .probe import GitProbe

__all__ = ["GitProbe"]
