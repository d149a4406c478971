"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.tree import Tree

from ospec.models.result import GroupResult, Outcome

if TYPE_CHECKING:
    from ospec.models.result import CaseResult, RunResult

console = Console()

_SECONDS_PER_MINUTE = 60.0
_MAX_FAILURE_MESSAGE_LENGTH = 200

_STATUS_MARKUP = {
    Outcome.PASSED: "[green]✓[/green]",
    Outcome.FAILED: "[red]✗[/red]",
    Outcome.TIMEOUT: "[magenta]⏱[/magenta]",
    Outcome.SKIPPED: "[yellow]⊘[/yellow]",
}


def _format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string."""
    if seconds >= _SECONDS_PER_MINUTE:
        return f"{seconds / _SECONDS_PER_MINUTE:.1f}m"
    return f"{seconds:.2f}s"


def _truncate(message: str, limit: int = _MAX_FAILURE_MESSAGE_LENGTH) -> str:
    return message if len(message) <= limit else message[: limit - 1] + "…"


class TerminalReporter:
    """Rich terminal output for run results."""

    def __init__(self, target: Console | None = None) -> None:
        self.console = target or console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        self.console.print(f"[dim]{message}[/dim]")

    # ── Result tree ────────────────────────────────────────────────────

    def print_result(self, result: RunResult, *, show_passed: bool = True) -> None:
        """Print the result tree, the failures, and the summary."""
        tree = Tree(f"[bold]{result.root.name or 'ospec'}[/bold]")
        self._add_group(tree, result.root, show_passed=show_passed)
        self.console.print(tree)
        self._print_failures(result)
        self.print_summary(result)

    def _add_group(self, branch: Tree, group: GroupResult, *, show_passed: bool) -> None:
        for failure in group.hook_failures:
            branch.add(f"[red]✗ {failure.kind} hook[/red] [dim]{failure.error}[/dim]")
        for child in group.children:
            if isinstance(child, GroupResult):
                if not show_passed and child.ok and child.skipped == 0:
                    continue
                sub = branch.add(f"[bold]{child.name}[/bold]")
                self._add_group(sub, child, show_passed=show_passed)
            elif show_passed or child.status is not Outcome.PASSED:
                branch.add(self._case_line(child))

    def _case_line(self, case: CaseResult) -> str:
        line = f"{_STATUS_MARKUP[case.status]} {case.name}"
        if case.status is not Outcome.SKIPPED:
            line += f" [dim]({case.duration_ms:.1f}ms)[/dim]"
        return line

    def _print_failures(self, result: RunResult) -> None:
        failed = [
            case
            for case in result.root.iter_cases()
            if case.status in (Outcome.FAILED, Outcome.TIMEOUT)
        ]
        hook_failures = list(result.root.iter_hook_failures())
        if not failed and not hook_failures:
            return
        self.console.print()
        self.console.print("[bold red]Failures:[/bold red]")
        for case in failed:
            self.console.print(f"  • {' > '.join(case.path)}", style="red")
            if case.failure_message:
                self.console.print(f"    {_truncate(case.failure_message)}", style="dim red")
        for failure in hook_failures:
            where = " > ".join(failure.path) or "<root>"
            self.console.print(f"  • {failure.kind} hook in {where}", style="red")
            self.console.print(f"    {_truncate(str(failure.error))}", style="dim red")

    # ── Summary ────────────────────────────────────────────────────────

    def print_summary(self, result: RunResult) -> None:
        """Print a visual bar of the outcome distribution with counts."""
        root = result.root
        if root.total == 0:
            self.console.print("  [dim]No tests executed[/dim]")
            return

        bar = self._build_result_bar(root.passed, root.failed, root.timed_out, root.skipped)
        dur_str = _format_duration(result.duration_ms / 1000)
        self.console.print()
        self.console.print(f"  [bold]{root.total}[/bold] tests  {bar}  [dim]⏱ {dur_str}[/dim]")

        parts: list[str] = []
        if root.passed:
            parts.append(f"[green]✓ {root.passed} passed[/green]")
        if root.failed:
            parts.append(f"[red]✗ {root.failed} failed[/red]")
        if root.timed_out:
            parts.append(f"[magenta]⏱ {root.timed_out} timed out[/magenta]")
        if root.skipped:
            parts.append(f"[yellow]⊘ {root.skipped} skipped[/yellow]")
        if root.hook_failed:
            parts.append(f"[red]⚠ {root.hook_failed} hook failures[/red]")
        self.console.print(f"  {'  '.join(parts)}")

        if result.bailed:
            self.print_warning("Bailed out before running every test")
        if result.pending_timed_out:
            self.print_warning(
                f"{result.pending_timed_out} timed-out test(s) still pending resolution"
            )
        self.console.print()

    def _build_result_bar(
        self,
        passed: int,
        failed: int,
        timed_out: int,
        skipped: int,
        width: int = 40,
    ) -> str:
        """Build a colored bar string proportional to result counts."""
        total = passed + failed + timed_out + skipped
        if total == 0:
            return f"[dim]{'░' * width}[/dim]"

        segments = [
            (passed, "green"),
            (failed, "red"),
            (timed_out, "magenta"),
            (skipped, "yellow"),
        ]

        chars: list[tuple[str, str]] = []
        for count, color in segments:
            n = round(count / total * width)
            chars.extend([("█", color)] * n)

        chars = chars[:width]
        while len(chars) < width:
            chars.append(("░", "dim"))

        # Group consecutive same-color runs
        result = ""
        i = 0
        while i < len(chars):
            char, color = chars[i]
            j = i + 1
            while j < len(chars) and chars[j][1] == color:
                j += 1
            result += f"[{color}]{char * (j - i)}[/{color}]"
            i = j

        return result


reporter = TerminalReporter()
