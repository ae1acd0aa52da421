"""Command-line argument parsing for git-sync-keeper."""

import argparse

from git_sync_keeper.__version__ import __version__
from git_sync_keeper.constants import DEFAULT_BINARY_THRESHOLD_MB, DEFAULT_MAX_BRANCHES


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="git-sync-keeper",
        description="Keep a local clone, its Core remote and its GitHub remote in sync",
        epilog="Nothing is changed unless --fix is given. Only fetches, fast-forward "
        "pushes and fast-forward resets are ever applied automatically.",
    )
    parser.add_argument(
        "path", nargs="?", default=".", help="Path to the local working copy (default: current directory)"
    )
    parser.add_argument("--core-remote", required=True, metavar="NAME", help="Name of the Core remote")
    parser.add_argument("--github-remote", required=True, metavar="NAME", help="Name of the GitHub remote")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument("--version", action="version", version=f"git-sync-keeper {__version__}")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )
    parser.add_argument(
        "--no-fetch",
        action="store_true",
        help="Do not fetch before checking (sync results are reported as stale)",
    )
    parser.add_argument(
        "--quick", action="store_true", help="Skip the large binary scan of the history"
    )
    parser.add_argument(
        "--skip-branches", action="store_true", help="Only check the default branch"
    )
    parser.add_argument("--show-fixes", action="store_true", help="List suggested fixes")
    parser.add_argument(
        "--fix", action="store_true", help="Apply the fixes that are safe to apply automatically"
    )
    parser.add_argument(
        "--fix-id", metavar="ID", help="Only apply fixes for this scenario ID (implies --fix)"
    )
    parser.add_argument(
        "--skip-id", nargs="*", default=[], metavar="ID", help="Scenario IDs never to fix"
    )
    parser.add_argument(
        "--stop-on-error", action="store_true", help="Stop at the first fix that fails"
    )
    parser.add_argument(
        "--locate-blob",
        metavar="SHA",
        help="Show the commits and paths holding a large blob, then exit",
    )
    parser.add_argument(
        "--max-branches",
        type=int,
        default=DEFAULT_MAX_BRANCHES,
        metavar="N",
        help=f"Classify at most N branches (default: {DEFAULT_MAX_BRANCHES})",
    )
    parser.add_argument(
        "--threshold-mb",
        type=float,
        default=DEFAULT_BINARY_THRESHOLD_MB,
        metavar="MB",
        help=f"Size from which a blob counts as a large binary (default: {DEFAULT_BINARY_THRESHOLD_MB:g})",
    )

    return parser.parse_args(argv)
