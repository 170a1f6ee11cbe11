"""Command-line interface for the testimpact tool."""

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.traceback import install
from pathlib import Path
import json
import logging
import time
from typing import List, Optional

from .core import AnalysisConfiguration, GitDiffProvider, ImpactAnalysisError
from .analyzers import ImpactAnalyzer, ImpactedTest, ImpactType

# Set up rich error handling
install()
console = Console()
# Logs go to stderr so --json output stays parseable
err_console = Console(stderr=True)

# Impact type -> (section title, colour)
SECTIONS = [
    (ImpactType.ADDED, "ADDED", "green"),
    (ImpactType.MODIFIED, "MODIFIED", "yellow"),
    (ImpactType.REMOVED, "REMOVED", "red"),
    (ImpactType.IMPACTED_BY_DEPENDENCY, "INDIRECT IMPACT", "magenta"),
]


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose, rich_tracebacks=True)],
        force=True
    )


@click.command()
@click.option('--repo', 'repo', required=True, type=click.Path(), help='Path to the git repository')
@click.option('--commit', 'commit', required=True, help='Commit SHA to analyze')
@click.option('--json', 'as_json', is_flag=True, help='Print results as JSON')
@click.option('--config', 'config_path', type=click.Path(), help='Configuration file (default: <repo>/.testimpact.json)')
@click.option('--max-depth', type=click.IntRange(min=0), help='Maximum reference hops for indirect impact')
@click.option('--explain', is_flag=True, help='Show the symbol chain behind each indirect impact')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(repo, commit, as_json, config_path, max_depth, explain, verbose):
    """Testimpact - find the tests affected by a commit.

    Compares COMMIT with its first parent and reports tests that were added,
    modified or removed, and tests that use code changed by the commit.

    USAGE:
        testimpact --repo . --commit HEAD
        testimpact --repo . --commit abc123 --json
        testimpact --repo . --commit HEAD --explain --max-depth 3
    """
    _configure_logging(verbose)

    repo_path = Path(repo).resolve()
    if not repo_path.is_dir():
        console.print(f"[red]❌ Error:[/red] Repository path not found: {escape(str(repo))}", soft_wrap=True)
        raise click.Abort()

    try:
        start_time = time.time()

        configuration = AnalysisConfiguration.load(str(repo_path), config_path)
        configuration = configuration.with_overrides(max_depth=max_depth)

        analyzer = ImpactAnalyzer(GitDiffProvider(str(repo_path)), str(repo_path), configuration)
        results = analyzer.analyze(commit)

        duration_ms = int((time.time() - start_time) * 1000)

    except ImpactAnalysisError as e:
        console.print(f"[red]❌ Error:[/red] {escape(str(e))}", soft_wrap=True)
        raise click.Abort()

    if as_json:
        _output_json(commit, str(repo_path), duration_ms, results)
    else:
        _display_results(commit, str(repo_path), duration_ms, results, analyzer if explain else None)


def _output_json(commit: str, repo: str, duration_ms: int, results: List[ImpactedTest]):
    output = {
        'commit': commit,
        'repo': repo,
        'durationMs': duration_ms,
        'impacted_tests': [result.to_dict() for result in results],
    }
    click.echo(json.dumps(output, indent=2))


def _display_results(commit: str, repo: str, duration_ms: int, results: List[ImpactedTest],
                     analyzer: Optional[ImpactAnalyzer] = None):
    """Grouped human-readable report."""
    console.print(f"\n🔍 [bold]Test Impact Analysis[/bold]")
    console.print(f"Commit: [cyan]{escape(commit)}[/cyan]")
    console.print(f"Repository: {escape(repo)}")
    console.print(f"Time: {duration_ms}ms")

    if not results:
        console.print("\n[green]No impacted tests found.[/green]")
        return

    for impact_type, title, colour in SECTIONS:
        group = [result for result in results if result.impact_type is impact_type]
        if not group:
            continue

        console.print(f"\n[bold {colour}]\\[{title}][/bold {colour}] ({len(group)})")
        for result in group:
            line = f"  - {escape(result.test_name)} [dim]({escape(result.file_path)})[/dim]"
            if result.related_file:
                line += f" via {escape(result.related_file)}"
            console.print(line)

            if analyzer is not None:
                chain = analyzer.dependency_chain(result)
                if chain:
                    console.print(f"      [dim]{escape(' → '.join(chain))}[/dim]")

    console.print(f"\n✅ {len(results)} impacted tests")


if __name__ == '__main__':
    cli()
