"""Command-line entry point for git-sync-keeper"""

import sys

from rich.console import Console

from git_sync_keeper.config import Config
from git_sync_keeper.core import SyncKeeper
from git_sync_keeper.logging_config import setup_logging
from git_sync_keeper.models.fix import AutoFixOptions
from git_sync_keeper.services.display_service import DisplayService

from .args import parse_args

console = Console()


def main(argv=None):
    """Main entry point for the application."""
    debug = False
    try:
        parsed_args = parse_args(argv)
        debug = parsed_args.debug

        setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug)

        config = Config(
            core_remote=parsed_args.core_remote,
            github_remote=parsed_args.github_remote,
            fetch_before_check=not parsed_args.no_fetch,
            skip_corruption=parsed_args.quick,
            skip_branches=parsed_args.skip_branches,
            max_branches=parsed_args.max_branches,
            binary_threshold_mb=parsed_args.threshold_mb,
            verbose=parsed_args.verbose,
            debug=parsed_args.debug,
        )

        if parsed_args.debug:
            console.print("[yellow]Debug mode enabled[/yellow]")
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                console.print(f"  {key}: {value}")

        keeper = SyncKeeper(parsed_args.path, config)
        display = DisplayService(verbose=parsed_args.verbose, debug=parsed_args.debug)

        if parsed_args.locate_blob:
            locations = keeper.locate_large_binary(parsed_args.locate_blob)
            display.display_blob_locations(parsed_args.locate_blob, locations)
            return 0

        state = keeper.detect()
        display.display_state(state)
        if not parsed_args.skip_branches:
            display.display_branches(state)

        if parsed_args.fix or parsed_args.fix_id:
            options = AutoFixOptions(
                fix_id=parsed_args.fix_id,
                skip_ids=parsed_args.skip_id,
                stop_on_error=parsed_args.stop_on_error,
            )
            result = keeper.auto_fix(state, options)
            display.display_auto_fix_result(result)
            return 0 if result.converged else 1

        fixes = keeper.suggest_fixes(state)
        if parsed_args.show_fixes:
            display.display_fixes(fixes)
        elif fixes:
            console.print(f"\n{len(fixes)} suggested fix(es), run with --show-fixes to list them")

        return 0
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
