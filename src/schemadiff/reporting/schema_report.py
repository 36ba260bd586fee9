"""Compatibility report generation and display."""

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from schemadiff.migration.models import MigrationPlan
from schemadiff.schema.models import (
    ChangeKind,
    CompatibilityReport,
    Severity,
    ValidationResult,
)

SEVERITY_COLORS = {
    Severity.INFO: "green",
    Severity.WARNING: "yellow",
    Severity.BREAKING: "bold red",
}

CHANGE_ICONS = {
    ChangeKind.ADDED: "➕",
    ChangeKind.REMOVED: "➖",
    ChangeKind.TYPE_CHANGED: "🔄",
    ChangeKind.REQUIREDNESS_CHANGED: "⚡",
    ChangeKind.CONSTRAINT_TIGHTENED: "📋",
    ChangeKind.CONSTRAINT_LOOSENED: "📋",
    ChangeKind.RENAMED: "✏️ ",
}


def _severity_markup(severity: Severity | None) -> str:
    if severity is None:
        return "[dim]UNCLASSIFIED[/dim]"
    color = SEVERITY_COLORS.get(severity, "white")
    return f"[{color}]{severity.name}[/{color}]"


def _score_color(report: CompatibilityReport) -> str:
    if report.has_breaking_changes:
        return "red"
    if report.is_compatible:
        return "green"
    return "yellow"


def display_compatibility_report(
    report: CompatibilityReport, console: Console | None = None
) -> None:
    """Display a compatibility report.

    Args:
        report: Report to display
        console: Rich console (created if None)
    """
    if console is None:
        console = Console()

    format_name = report.metadata.get("format", "schema")
    versions = (
        f"{report.metadata.get('old_version', '?')} → {report.metadata.get('new_version', '?')}"
    )
    title = f"🔍 {format_name} compatibility: {versions}"

    if not report.has_changes:
        console.print(
            Panel.fit(
                "[green]✓ No schema changes detected[/green]",
                title=title,
                border_style="green",
            )
        )
        return

    color = _score_color(report)
    verdict = "COMPATIBLE" if report.is_compatible else "INCOMPATIBLE"
    console.print(
        Panel.fit(
            f"[{color}]{verdict}[/{color}]  score {report.compatibility_score}/100 "
            f"(threshold {report.metadata.get('threshold', '?')})",
            title=title,
            border_style=color,
        )
    )

    if report.has_breaking_changes:
        console.print(
            Panel.fit(
                "[bold red]⚠️  BREAKING CHANGES DETECTED[/bold red]\n"
                "Existing data or clients may be invalid under the new schema",
                border_style="red",
            )
        )
    console.print()

    changes_table = Table(title="Changes")
    changes_table.add_column("Location", style="cyan")
    changes_table.add_column("Change", style="yellow")
    changes_table.add_column("Severity", justify="center")
    changes_table.add_column("Description", style="white", max_width=50)

    for change in report.changes:
        icon = CHANGE_ICONS.get(change.kind, "•")
        changes_table.add_row(
            change.path,
            f"{icon} {change.kind.value}",
            _severity_markup(change.severity),
            change.description,
        )

    console.print(changes_table)
    console.print()

    if report.issues:
        issues_table = Table(title="Recommendations")
        issues_table.add_column("Location", style="cyan")
        issues_table.add_column("Severity", justify="center")
        issues_table.add_column("Recommendation", style="green", max_width=60)

        # Most severe first
        for issue in sorted(
            report.issues, key=lambda i: i.severity.rank if i.severity else -1, reverse=True
        ):
            issues_table.add_row(issue.location, _severity_markup(issue.severity), issue.hint)

        console.print(issues_table)
        console.print()


def display_migration_plan(plan: MigrationPlan, console: Console | None = None) -> None:
    """Display migration steps in execution order."""
    if console is None:
        console = Console()

    source = plan.metadata.get("source_version", "?")
    target = plan.metadata.get("target_version", "?")
    title = f"🛠  Migration plan: {source} → {target}"

    if plan.is_empty:
        console.print(
            Panel.fit("[green]✓ Nothing to migrate[/green]", title=title, border_style="green")
        )
        return

    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Step", style="white")
    table.add_column("Severity", justify="center")

    instructions = plan.instructions or (None,) * len(plan.steps)
    for number, (step, instruction) in enumerate(zip(plan.steps, instructions), start=1):
        severity = instruction.change.severity if instruction is not None else None
        table.add_row(str(number), step, _severity_markup(severity))

    console.print(table)

    if plan.metadata.get("is_breaking") == "true":
        console.print(
            f"[red]{plan.metadata.get('breaking_count', '?')} breaking step(s); "
            f"coordinate the rollout with consumers[/red]"
        )


def display_validation_result(result: ValidationResult, console: Console | None = None) -> None:
    """Display the outcome of a change set validation."""
    if console is None:
        console = Console()

    checked = result.context.get("changes_checked", "?")
    if result.valid:
        console.print(f"[green]✓ {checked} change(s) are consistent with the rules[/green]")
        return

    table = Table(title=f"Validation errors ({len(result.issues)})")
    table.add_column("Code", style="magenta", no_wrap=True)
    table.add_column("Location", style="cyan")
    table.add_column("Message", style="white", max_width=70)

    for issue in result.issues:
        table.add_row(issue.code, issue.path, issue.message)

    console.print(table)


def generate_report_text(
    report: CompatibilityReport, plan: MigrationPlan | None = None
) -> str:
    """Generate text report of a compatibility analysis.

    Args:
        report: Compatibility report
        plan: Optional migration plan appended after the changes

    Returns:
        Multi-line text report
    """
    summary = report.get_summary()
    metadata = report.metadata

    lines = [
        "=" * 80,
        f"Schema Compatibility Report ({metadata.get('format', 'unknown')})",
        "=" * 80,
        "",
        "SUMMARY:",
        f"  Versions: {metadata.get('old_version', '?')} → {metadata.get('new_version', '?')}",
        f"  Compatible: {'yes' if report.is_compatible else 'no'}",
        f"  Score: {report.compatibility_score}/100 "
        f"(threshold {metadata.get('threshold', '?')})",
        f"  Total changes: {summary['total_changes']}",
        f"  Breaking changes: {summary['breaking_changes']}",
        f"  Warnings: {summary['warnings']}",
        "",
    ]

    if report.has_breaking_changes:
        lines.append("⚠️  WARNING: Breaking changes detected!")
        lines.append("")

    hints = {issue.change.location: issue.hint for issue in report.issues}

    if report.changes:
        lines.append("Changes:")
        for change in report.changes:
            lines.append(f"  • {change.path}")
            lines.append(f"    Change: {change.kind.value}")
            lines.append(
                f"    Severity: {change.severity.name if change.severity else 'UNCLASSIFIED'}"
            )
            lines.append(f"    Description: {change.description}")
            if change.location in hints:
                lines.append(f"    Recommendation: {hints[change.location]}")
            lines.append("")

    if plan is not None and not plan.is_empty:
        lines.extend(["-" * 80, "Migration Plan:", "-" * 80])
        for number, step in enumerate(plan.steps, start=1):
            lines.append(f"  {number}. {step}")
        lines.append("")

    lines.extend(["=" * 80, ""])

    return "\n".join(lines)


def save_report(
    report: CompatibilityReport,
    output_path: str | Path,
    plan: MigrationPlan | None = None,
) -> None:
    """Save compatibility report to file.

    Args:
        report: Compatibility report
        output_path: Path to output file
        plan: Optional migration plan to include
    """
    text = generate_report_text(report, plan)

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(text)
