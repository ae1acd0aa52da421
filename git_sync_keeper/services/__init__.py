"""Detection, suggestion and remediation services for git-sync-keeper."""
