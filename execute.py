#!/usr/bin/env python3
"""
Rule Wizard - question-driven pom.xml configuration

Stages:
1. Read - Parse the pom.xml into a snapshot
2. Ask - Surface the catalogue's gated questions
3. Plan - Turn answers into add-if-absent changes
4. Resolve - Ask keep/override for anything that already exists
5. Write - Splice the changes in, leaving everything else untouched

Usage:
    python3 execute.py run --catalogue maven-plugins --pom pom.xml
    python3 execute.py run -c maven-plugins -p pom.xml --answers answers.yaml --dry-run
    python3 execute.py list
    python3 execute.py render maven-plugins
    python3 execute.py validate my-catalogue.yaml
"""

import argparse
import difflib
import os
import sys
import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.syntax import Syntax
from rich.table import Table

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from rulewizard.errors import CatalogueError, InvalidAnswer, MalformedDocument, RuleWizardError, WriteConflict
from rulewizard.models import QuestionNode, RunSummary
from rulewizard.phases import DocumentWriter, ScriptedAnswers, WizardRun, ask_all, save_transcript
from rulewizard.utils import (
    WizardConfig,
    check_catalogue_file,
    format_summary_markdown,
    list_catalogues,
    load_catalogue,
    load_config,
    render_catalogue_markdown,
    setup_structured_logging,
    write_all,
)
from rulewizard.utils.config_loader import DEFAULT_CONFIG_PATH, apply_env_overrides

console = Console()
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_WRITE_CONFLICT = 2
EXIT_CANCELLED = 130

# Directories never scanned for existing artifact files
SKIPPED_DIRS = {".git", ".idea", ".mvn", "target", "node_modules", "__pycache__"}


def load_settings(config_path: Optional[str]) -> WizardConfig:
    """Load config; the default config file is optional, an explicit one is not."""
    if config_path or os.getenv("RULEWIZARD_CONFIG"):
        return load_config(config_path)

    default = Path(__file__).parent / DEFAULT_CONFIG_PATH
    if default.exists():
        return load_config(default)
    return apply_env_overrides(WizardConfig())


def scan_project_files(root: Path) -> set[str]:
    """Relative POSIX paths of the files next to the document."""
    found = set()
    for current, dirs, files in os.walk(root):
        dirs[:] = [d for d in dirs if d not in SKIPPED_DIRS]
        for name in files:
            found.add((Path(current) / name).relative_to(root).as_posix())
    return found


def ask_interactively(node: QuestionNode):
    """Prompt for one answer on the console."""
    console.print()
    title = "[bold yellow]Conflict[/bold yellow]" if node.is_conflict else f"[bold cyan]{node.key}[/bold cyan]"
    console.print(f"{title}: {node.prompt}")
    if node.help:
        console.print(f"  [dim]{node.help}[/dim]")

    if node.options:
        for value, label in zip(node.options, node.option_labels or [None] * len(node.options)):
            console.print(f"  • {value}" + (f" [dim]- {label}[/dim]" if label else ""))
        if node.multiple:
            return Prompt.ask("  Choose one or more (comma-separated)", console=console)
        return Prompt.ask("  Choose", choices=list(node.options), console=console)

    hint = f" (pattern {node.pattern})" if node.pattern else ""
    return Prompt.ask(f"  Answer{hint}", console=console)


def report_invalid_answer(node: QuestionNode, error: InvalidAnswer) -> None:
    console.print(f"  [red]✗ {error.reason}[/red]")


def print_summary(summary: RunSummary) -> None:
    table = Table(title=f"{summary.catalogue} v{summary.catalogue_version}")
    table.add_column("Feature", style="cyan")
    table.add_column("Status")
    table.add_column("Target")
    table.add_column("Outcome")

    styles = {
        "applied": "green",
        "overridden": "magenta",
        "kept-existing": "yellow",
        "shadowed": "dim",
        "already-present": "dim",
        "skipped-kept-existing": "yellow",
        "skipped-shadowed": "dim",
        "skipped-not-selected": "dim",
    }

    for outcome in summary.features:
        status = f"[{styles[outcome.status.value]}]{outcome.status.value}[/]"
        if not outcome.ops:
            table.add_row(outcome.feature, status, "", "")
        for op in outcome.ops:
            table.add_row(outcome.feature, status, op.op.target, f"[{styles[op.status.value]}]{op.status.value}[/]")

    console.print(table)


def execute_run(
    catalogue_name: str,
    pom: str,
    settings: WizardConfig,
    answers_file: Optional[str] = None,
    save_answers: Optional[str] = None,
    dry_run: bool = False,
    summary_file: Optional[str] = None,
) -> int:
    """
    Run a catalogue against a pom.xml.

    Args:
        catalogue_name: Catalogue name or YAML path
        pom: Path to the pom.xml
        settings: Loaded configuration
        answers_file: Prepared answers (transcript JSON or YAML mapping)
        save_answers: Where to save the answer transcript
        dry_run: Show the changes without writing anything
        summary_file: Where to write the Markdown summary

    Returns:
        Exit code (0 = success, 1 = error, 2 = write conflict)
    """
    pom_path = Path(pom)
    project_root = pom_path.resolve().parent

    catalogue = load_catalogue(catalogue_name, settings.catalogues.search_paths)

    console.print(Panel.fit(
        f"[bold cyan]Rule Wizard[/bold cyan]\n"
        f"{catalogue.title or catalogue.name} v{catalogue.version} → {pom_path}"
        + (" [dry-run]" if dry_run else ""),
        border_style="cyan",
    ))

    if not pom_path.exists():
        console.print(f"[red]Error: document not found: {pom_path}[/red]")
        return EXIT_ERROR

    original = pom_path.read_bytes()
    run = WizardRun(
        catalogue,
        original,
        existing_files=scan_project_files(project_root),
        writer=DocumentWriter(indent=settings.document.indent),
    )

    if answers_file:
        answer_source = ScriptedAnswers.from_file(answers_file)
        on_invalid = None
        console.print(f"  [green]✓[/green] Answers loaded: {answers_file}")
    else:
        answer_source = ask_interactively
        on_invalid = report_invalid_answer

    try:
        ask_all(run, answer_source, on_invalid)
        # Re-read right before writing so external edits are detected
        summary = run.finish(
            current_raw=pom_path.read_bytes().decode("utf-8"),
            current_files=scan_project_files(project_root),
        )
    except KeyboardInterrupt:
        run.cancel()
        raise
    except MalformedDocument as e:
        console.print(f"\n[bold red]✗ Cannot read {pom_path}: {e}[/bold red]")
        return EXIT_ERROR
    except WriteConflict as e:
        console.print(f"\n[bold red]✗ {e}[/bold red]")
        console.print("  Nothing was written. Run the wizard again against the current document.")
        return EXIT_WRITE_CONFLICT
    finally:
        if save_answers and run.responses.records():
            save_transcript(run, save_answers)
            console.print(f"  [green]✓[/green] Answers saved: {save_answers}")

    if isinstance(answer_source, ScriptedAnswers) and answer_source.unused():
        console.print(f"  [yellow]⚠[/yellow] Unused answers: {', '.join(answer_source.unused())}")

    result = run.result
    console.print()
    print_summary(summary)

    if dry_run:
        diff = "".join(difflib.unified_diff(
            original.decode("utf-8").splitlines(keepends=True),
            result.document.splitlines(keepends=True),
            fromfile=str(pom_path),
            tofile=f"{pom_path} (planned)",
        ))
        console.print("\n[bold]Planned changes [dry-run][/bold]")
        if diff:
            console.print(Syntax(diff, "diff"))
        else:
            console.print("  [dim]No changes to the document[/dim]")
        for relative in sorted(result.artifacts):
            console.print(f"  [dim]Would write {relative}[/dim]")
    else:
        # Guard the pom against what was read and new artifacts against appearing
        contents: dict[Path, Union[str, bytes]] = {}
        expected: dict[Path, Optional[bytes]] = {}
        document_changed = result.changed and result.document.encode("utf-8") != original
        backup = pom_path.with_name(pom_path.name + ".bak")
        if document_changed:
            contents[pom_path] = result.document
            expected[pom_path] = original
            if settings.document.backup:
                contents[backup] = original
        for relative, content in result.artifacts.items():
            contents[project_root / relative] = content
            if relative not in run.existing_files:
                expected[project_root / relative] = None

        try:
            write_all(contents, expected)
        except WriteConflict as e:
            console.print(f"\n[bold red]✗ {e}[/bold red]")
            console.print("  Nothing was written. Run the wizard again against the current document.")
            return EXIT_WRITE_CONFLICT
        except OSError as e:
            console.print(f"\n[bold red]✗ Cannot write files: {e}[/bold red]")
            console.print("  Nothing was written.")
            return EXIT_ERROR

        if document_changed:
            if settings.document.backup:
                console.print(f"  [green]✓[/green] Backup: {backup}")
            console.print(f"  [green]✓[/green] Updated {pom_path}")
        else:
            console.print(f"  [dim]{pom_path} unchanged[/dim]")
        for relative in sorted(result.artifacts):
            console.print(f"  [green]✓[/green] Wrote {relative}")

    summary_path = summary_file
    if not summary_path and settings.output.summary_dir:
        summary_path = str(Path(settings.output.summary_dir) / f"{catalogue.name}-{run.run_id}.md")
    if summary_path:
        Path(summary_path).parent.mkdir(parents=True, exist_ok=True)
        Path(summary_path).write_text(format_summary_markdown(summary), encoding="utf-8")
        console.print(f"  [green]✓[/green] Summary: {summary_path}")

    console.print("\n[bold green]✓ Run completed[/bold green]")
    return EXIT_OK


def list_command(settings: WizardConfig) -> int:
    table = Table(title="Catalogues")
    table.add_column("Name", style="cyan")
    table.add_column("Version")
    table.add_column("Title")
    table.add_column("Source", style="dim")

    for name, path in list_catalogues(settings.catalogues.search_paths).items():
        try:
            catalogue = load_catalogue(path)
            table.add_row(name, catalogue.version, catalogue.title, str(path))
        except CatalogueError as e:
            table.add_row(name, "?", f"[red]invalid: {e}[/red]", str(path))

    console.print(table)
    return EXIT_OK


def render_command(name: str, settings: WizardConfig, output: Optional[str] = None) -> int:
    catalogue = load_catalogue(name, settings.catalogues.search_paths)
    markdown = render_catalogue_markdown(catalogue)
    if output:
        Path(output).write_text(markdown, encoding="utf-8")
        console.print(f"[green]✓[/green] Rendered {catalogue.name} → {output}")
    else:
        console.print(Markdown(markdown))
    return EXIT_OK


def validate_command(path: str) -> int:
    result = check_catalogue_file(path)

    console.print(Panel.fit(
        f"[bold]{result.catalogue_name or path}[/bold]\n"
        f"{result.questions_found} question(s), {result.features_found} feature(s), "
        f"{result.fragments_found} fragment(s)",
        border_style="green" if result.is_valid else "red",
    ))
    for error in result.errors:
        console.print(f"  [red]✗[/red] {error}")
    for warning in result.warnings:
        console.print(f"  [yellow]⚠[/yellow] {warning}")

    if result.is_valid:
        console.print("[bold green]✓ Catalogue is valid[/bold green]")
        return EXIT_OK
    return EXIT_ERROR


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Rule Wizard - question-driven pom.xml configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 execute.py run --catalogue maven-plugins --pom pom.xml
  python3 execute.py run -c maven-dependencies -p pom.xml --answers answers.yaml
  python3 execute.py run -c maven-plugins -p pom.xml --dry-run
  python3 execute.py list
  python3 execute.py render maven-plugins -o RULES.md
  python3 execute.py validate ./catalogues/custom.yaml

Exit codes:
  0    success
  1    error (bad document, bad catalogue, missing answer)
  2    document changed while the wizard was running, nothing written
  130  cancelled
        """
    )
    parser.add_argument("--config", help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a catalogue against a pom.xml")
    run_parser.add_argument("--catalogue", "-c", required=True, help="Catalogue name or YAML file")
    run_parser.add_argument("--pom", "-p", default="pom.xml", help="Document to configure (default: pom.xml)")
    run_parser.add_argument("--answers", "-a", help="Answers file (transcript .json or YAML mapping)")
    run_parser.add_argument("--save-answers", "-s", help="Save the answers as a transcript")
    run_parser.add_argument("--dry-run", "-d", action="store_true", help="Show changes without writing")
    run_parser.add_argument("--summary", help="Write a Markdown summary to this file")

    subparsers.add_parser("list", help="List available catalogues")

    render_parser = subparsers.add_parser("render", help="Render a catalogue as a Markdown rules document")
    render_parser.add_argument("name", help="Catalogue name or YAML file")
    render_parser.add_argument("--output", "-o", help="Write to a file instead of the console")

    validate_parser = subparsers.add_parser("validate", help="Validate a catalogue file")
    validate_parser.add_argument("path", help="Catalogue YAML file")

    args = parser.parse_args()

    try:
        settings = load_settings(args.config)
        setup_structured_logging(settings.logging.level, settings.logging.json_output)

        if args.command == "run":
            return execute_run(
                catalogue_name=args.catalogue,
                pom=args.pom,
                settings=settings,
                answers_file=args.answers,
                save_answers=args.save_answers,
                dry_run=args.dry_run,
                summary_file=args.summary,
            )
        if args.command == "list":
            return list_command(settings)
        if args.command == "render":
            return render_command(args.name, settings, args.output)
        return validate_command(args.path)

    except CatalogueError as e:
        console.print(f"[red]Error: {e}[/red]")
        for error in e.errors:
            console.print(f"  - {error}")
        return EXIT_ERROR
    except (RuleWizardError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_ERROR
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled, nothing was written[/yellow]")
        return EXIT_CANCELLED


if __name__ == "__main__":
    sys.exit(main())
