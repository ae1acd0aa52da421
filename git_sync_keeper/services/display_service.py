"""Display and formatting service for detected state and fixes"""
from typing import List, Optional, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from git_sync_keeper.constants import (
    BRANCH_COLUMNS,
    CLI_COLORS,
    FIX_COLUMNS,
    STATE_COLUMNS,
    SYMBOL_ABSENT,
    SYMBOL_PRESENT,
)
from git_sync_keeper.models.fix import AutoFixResult, Fix
from git_sync_keeper.models.state import BranchSyncState, RepositoryState
from git_sync_keeper.services import classification_tables as tables

console = Console()


def _symbol(present: bool) -> str:
    return SYMBOL_PRESENT if present else SYMBOL_ABSENT


def _style(scenario_id: str) -> Optional[str]:
    return CLI_COLORS.get(tables.severity(scenario_id))


def _table(columns) -> Table:
    table = Table()
    for col in columns:
        if col.width:
            table.add_column(col.label, width=col.width)
        else:
            table.add_column(col.label)
    return table


def _sync_details(sync: BranchSyncState) -> str:
    parts = []
    for label, pair in (("local/core", sync.local_core),
                        ("local/github", sync.local_github),
                        ("core/github", sync.core_github)):
        if pair is not None:
            parts.append(f"{label}: {pair.describe()}")
    if sync.partial:
        parts.append("partial")
    if not sync.data_is_fresh:
        parts.append("STALE")
    return ", ".join(parts)


class DisplayService:
    def __init__(self, verbose: bool = False, debug: bool = False):
        self.verbose = verbose
        self.debug_mode = debug

    def display_state(self, state: RepositoryState) -> None:
        """Display one row per dimension, then warnings."""
        table = _table(STATE_COLUMNS)
        existence = state.existence

        table.add_row(
            "Existence",
            existence.id,
            f"{existence.description} (local {_symbol(existence.local_exists)}, "
            f"{state.core_remote} {_symbol(existence.core_exists)}, "
            f"{state.github_remote} {_symbol(existence.github_exists)})",
            style=_style(existence.id),
        )

        tree = state.working_tree
        if tree is not None:
            details = tree.description
            if not tree.clean or self.verbose:
                details += (
                    f" ({len(tree.staged_files)} staged, {len(tree.unstaged_files)} unstaged, "
                    f"{len(tree.untracked_files)} untracked)"
                )
            table.add_row("Working tree", tree.id, details, style=_style(tree.id))

        corruption = state.corruption
        if corruption is not None:
            if not corruption.checked:
                table.add_row("Corruption", "-", "not checked", style="dim")
            else:
                details = corruption.description
                if corruption.has_corruption:
                    details += f" ({len(corruption.large_binaries)} blob(s) >= {corruption.threshold_mb:g} MB)"
                table.add_row("Corruption", corruption.id, details, style=_style(corruption.id))

        sync = state.sync
        if sync is not None:
            details = f"'{sync.branch}': {sync.description}"
            sync_details = _sync_details(sync)
            if sync_details:
                details += f" ({sync_details})"
            table.add_row("Sync", sync.id, details, style=_style(sync.id))

        console.print(table)

        if tree is not None and tree.conflicted_files:
            console.print(f"[red]Unresolved merge conflicts: {escape(', '.join(tree.conflicted_files))}[/red]")

        if self.verbose and state.corruption is not None:
            for blob in state.corruption.large_binaries:
                console.print(f"  {blob.sha}  {blob.size_mb:g} MB")

        for warning in state.warnings:
            console.print(f"[yellow]Warning ({warning.code}): {escape(warning.message)}[/yellow]")

        if self.debug_mode and state.duration_ms:
            console.print(f"[dim]Detection took {state.duration_ms} ms[/dim]")

    def display_branches(self, state: RepositoryState) -> None:
        """Display branch topology. Fully tracked, synced branches are hidden unless verbose."""
        table = _table(BRANCH_COLUMNS)
        shown = 0
        for branch in state.branches:
            sync_id = branch.sync.id if branch.sync is not None else ""
            if not self.verbose and branch.id == "B1" and sync_id in ("", "S1"):
                continue
            style_id = sync_id if sync_id and sync_id != "S1" else branch.id
            table.add_row(
                branch.name,
                branch.id,
                _symbol(branch.in_local),
                _symbol(branch.in_core),
                _symbol(branch.in_github),
                sync_id,
                style=_style(style_id),
            )
            shown += 1

        if shown:
            console.print(table)
        elif state.branches:
            console.print(f"All {len(state.branches)} branches are tracked and in sync")

    def display_fixes(self, fixes: List[Fix]) -> None:
        if not fixes:
            console.print("[green]Nothing to fix[/green]")
            return

        table = _table(FIX_COLUMNS)
        for fix in fixes:
            description = fix.description
            if self.verbose and fix.reason:
                description += f"\n[dim]{fix.reason}[/dim]"
            table.add_row(
                str(fix.priority),
                fix.scenario_id,
                _symbol(fix.auto_fixable),
                description,
                fix.manual_hint,
                style=_style(fix.scenario_id),
            )
        console.print(table)

        auto = sum(1 for fix in fixes if fix.auto_fixable)
        console.print(f"\n{auto} of {len(fixes)} fix(es) can be applied with --fix")

    def display_auto_fix_result(self, result: AutoFixResult) -> None:
        for fix in result.applied:
            console.print(f"[green]✓ {fix.scenario_id}: {fix.operation.describe()}[/green]")
        for fix, error in result.failed:
            console.print(f"[red]✗ {fix.scenario_id}: {escape(str(error))}[/red]")

        if result.skipped:
            console.print("\nNeeds manual resolution:")
            for fix in result.skipped:
                hint = f" ({fix.manual_hint})" if fix.manual_hint else ""
                console.print(f"  {fix.scenario_id}: {fix.description}{hint}")

        if result.final_state is not None and result.final_state.sync is not None:
            sync = result.final_state.sync
            console.print(f"\nSync is now {sync.id}: {sync.description}", style=_style(sync.id))

    def display_blob_locations(self, sha: str, locations: List[Tuple[str, str]]) -> None:
        if not locations:
            console.print(f"[yellow]No commit in history introduces {sha}[/yellow]")
            return
        console.print(f"Blob {sha} appears in:")
        for commit, path in locations:
            console.print(f"  {commit[:12]}  {path}")
