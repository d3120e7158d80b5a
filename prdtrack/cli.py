"""
Prdtrack CLI - Keep tracked issues in step with a Product Requirements Document.

Commands:
    init      - Initialize Prdtrack in current repository
    create    - Create issues from a PRD
    update    - Re-plan issues after the PRD changed
    list      - List tracked issues
    show      - Show one issue with its comments
    snapshot  - Print the PRD version stored for an issue
    diff      - Diff an issue's stored PRD version against a file
    clear     - Delete every issue in the store
    summary   - Show the last run summary
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

# Load .env file from current directory or repo root
load_dotenv()
from .config import get_repo_root
load_dotenv(get_repo_root() / ".env")

from . import __version__
from .config import BACKENDS, CONFIG_FILENAME, PrdtrackConfig, ensure_prdtrack_dir
from .errors import ItemNotFoundError, PrdtrackError
from .executor import ExecutionEngine
from .llm import get_llm_client
from .logs import configure_logging
from .models import ItemFilter, RunSummary
from .planner import PlanningEngine
from .processor import DocumentProcessor, load_document, load_summary
from .render import FeatureRenderer
from .significance import ChangeFilter
from .stores import create_store


SAMPLE_CONFIG = """\
# Prdtrack Configuration
# Environment variables override these values:
#   ISSUE_SERVICE_TYPE, ISSUE_STORAGE_PATH, GITHUB_TOKEN, GITHUB_REPOSITORY,
#   GITHUB_API_URL, PRDTRACK_MODEL, LOG_LEVEL

# Where issues live
store:
  backend: filesystem   # filesystem (default), github, memory
  path: .issues         # filesystem backend root
  # github_repository: owner/repo   # github backend (token from GITHUB_TOKEN)
  # snapshot_path: .prdtrack/snapshots  # keep PRD versions locally for github

# LLM configuration
# API keys are read from environment (OPENAI_API_KEY, ANTHROPIC_API_KEY, etc.)
# See: https://docs.litellm.ai/docs/providers
llm:
  model: gpt-4o          # LiteLLM model string
  # model: claude-3-5-sonnet-20241022  # Anthropic
  # model: ollama/llama3               # Local Ollama
  temperature: 0.1       # Lower = more consistent decisions
  max_tokens: 4000

# Diff lines that never count as a significant change
filter:
  min_line_length: 3
  extra_trivial_patterns: []

logging:
  level: INFO
  # file: .prdtrack/prdtrack.log  # rotating, one JSON object per line
  json: true

# Label marking issues owned by prdtrack
generated_label: generated
summary_path: .prdtrack/last-run.json
"""


def _fail(message: str) -> None:
    click.echo(f"❌ {message}", err=True)
    sys.exit(1)


def _get_config(ctx: click.Context) -> PrdtrackConfig:
    return ctx.obj["config"]


def _get_store(ctx: click.Context):
    config = _get_config(ctx)
    try:
        config.validate()
        return create_store(config.store)
    except PrdtrackError as e:
        _fail(str(e))


def _build_processor(ctx: click.Context) -> DocumentProcessor:
    config = _get_config(ctx)
    store = _get_store(ctx)
    planner = PlanningEngine(get_llm_client(config.llm), ChangeFilter(config.filter))
    executor = ExecutionEngine(store, FeatureRenderer(), config.generated_label)
    return DocumentProcessor(store, planner, executor, config)


def _print_summary(summary: RunSummary) -> None:
    icons = {"create": "🆕", "update": "✏️", "no_change": "💤"}
    click.echo(f"\n{'═' * 60}")
    click.echo(f"{icons.get(summary.mode, '📊')} Mode: {summary.mode}")
    click.echo(f"  Updated:   {summary.updated}")
    click.echo(f"  Created:   {summary.created}")
    click.echo(f"  Unchanged: {summary.unchanged}")
    if summary.trivial_changes:
        click.echo(f"  Trivial changes ignored: {len(summary.trivial_changes)}")
    if summary.rationale:
        click.echo(f"\n  {summary.rationale}")
    for failure in summary.failures:
        click.echo(f"  ❌ {failure.action} {failure.target}: {failure.error}", err=True)
    click.echo(f"{'═' * 60}")


def _run(ctx: click.Context, path: Path, force_create: bool, as_json: bool) -> None:
    processor = _build_processor(ctx)
    try:
        summary = processor.process_document(path, force_create=force_create)
    except PrdtrackError as e:
        _fail(str(e))

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_summary(summary)

    if not summary.ok:
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--backend", type=click.Choice(BACKENDS), default=None, help="Override the store backend")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def main(ctx: click.Context, backend: str | None, verbose: bool):
    """Prdtrack - Keep tracked issues in step with a PRD."""
    try:
        config = PrdtrackConfig.load(get_repo_root())
    except PrdtrackError as e:
        _fail(str(e))
    if backend:
        config.store.backend = backend
    configure_logging(config.logging, verbose=verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@main.command()
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize Prdtrack in the current repository."""
    repo_root = get_repo_root()
    click.echo(f"Initializing Prdtrack in: {repo_root}")

    prdtrack_dir = ensure_prdtrack_dir(repo_root)
    click.echo(f"  Created: {prdtrack_dir}")

    config_path = repo_root / CONFIG_FILENAME
    if not config_path.exists() or force:
        config_path.write_text(SAMPLE_CONFIG)
        click.echo(f"  Created: {config_path}")
    else:
        click.echo(f"  Skipped: {config_path} (already exists)")

    gitignore_path = repo_root / ".gitignore"
    gitignore_entry = "\n# Prdtrack\n.prdtrack/\n.env\n"
    if gitignore_path.exists():
        content = gitignore_path.read_text()
        if ".prdtrack" not in content:
            with open(gitignore_path, "a") as f:
                f.write(gitignore_entry)
            click.echo(f"  Updated: {gitignore_path}")
    else:
        gitignore_path.write_text(gitignore_entry)
        click.echo(f"  Created: {gitignore_path}")

    click.echo("\nPrdtrack initialized! Next steps:")
    click.echo(f"  1. Edit {CONFIG_FILENAME} to pick a store backend")
    click.echo("  2. Set OPENAI_API_KEY (or your provider's key)")
    click.echo("  3. Run: prdtrack create docs/prd.md")


@main.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def create(ctx: click.Context, path: Path, as_json: bool):
    """Create issues for every feature in a PRD."""
    _run(ctx, path, force_create=True, as_json=as_json)


@main.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--force-create", is_flag=True, help="Ignore existing issues and create from scratch")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def update(ctx: click.Context, path: Path, force_create: bool, as_json: bool):
    """Re-plan tracked issues against the current PRD.

    Without existing generated issues this behaves like `create`.

    Examples:

        prdtrack update docs/prd.md
        prdtrack --backend github update docs/prd.md
    """
    _run(ctx, path, force_create=force_create, as_json=as_json)


@main.command("list")
@click.option("--state", default="open", type=click.Choice(["open", "closed", "all"]), help="Issue state filter")
@click.option("--label", "labels", multiple=True, help="Only issues with this label (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_cmd(ctx: click.Context, state: str, labels: tuple[str, ...], as_json: bool):
    """List tracked issues."""
    store = _get_store(ctx)
    try:
        items = store.list_items(ItemFilter(state=state, labels=list(labels)))
    except PrdtrackError as e:
        _fail(str(e))

    if as_json:
        click.echo(json.dumps([
            {
                "id": item.id,
                "title": item.title,
                "state": item.state,
                "labels": item.labels,
                "updated_at": item.updated_at,
                "url": item.url,
            }
            for item in items
        ], indent=2, ensure_ascii=False))
        return

    if not items:
        click.echo("No issues found.")
        return

    click.echo(f"{'#':<6} {'State':<8} {'Title':<50} Labels")
    click.echo("─" * 90)
    for item in items:
        title = item.title[:47] + "..." if len(item.title) > 50 else item.title
        click.echo(f"{item.id:<6} {item.state:<8} {title:<50} {', '.join(item.labels)}")


@main.command()
@click.argument("item_id", type=int)
@click.pass_context
def show(ctx: click.Context, item_id: int):
    """Show one issue with its comments."""
    store = _get_store(ctx)
    try:
        item = store.get_item(item_id)
    except PrdtrackError as e:
        _fail(str(e))
    if item is None:
        _fail(str(ItemNotFoundError(item_id)))

    click.echo(f"#{item.id} {item.title} [{item.state}]")
    if item.labels:
        click.echo(f"Labels: {', '.join(item.labels)}")
    click.echo(f"Created: {item.created_at}  Updated: {item.updated_at}")
    if item.url:
        click.echo(f"URL: {item.url}")
    click.echo(f"\n{item.body}")
    for comment in item.comments:
        click.echo(f"\n💬 {comment.author} - {comment.created_at}\n{comment.body}")


@main.command()
@click.argument("item_id", type=int)
@click.pass_context
def snapshot(ctx: click.Context, item_id: int):
    """Print the PRD version stored with an issue."""
    store = _get_store(ctx)
    if not store.supports_snapshots:
        _fail(f"The {store.name} backend does not store PRD snapshots")
    try:
        latest = store.latest_snapshot(item_id)
    except PrdtrackError as e:
        _fail(str(e))
    if latest is None:
        _fail(f"No stored PRD version for issue #{item_id}")

    click.echo(f"# Snapshot {latest.content_hash} of {latest.document_path} ({latest.captured_at})", err=True)
    click.echo(latest.text)


@main.command()
@click.argument("item_id", type=int)
@click.argument("path", type=click.Path(path_type=Path))
@click.pass_context
def diff(ctx: click.Context, item_id: int, path: Path):
    """Diff an issue's stored PRD version against PATH."""
    store = _get_store(ctx)
    if not store.supports_snapshots:
        _fail(f"The {store.name} backend does not store PRD snapshots")
    try:
        content = load_document(path)
        click.echo(store.get_snapshot_diff(item_id, content))
    except PrdtrackError as e:
        _fail(str(e))


@main.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def clear(ctx: click.Context, yes: bool):
    """Delete every issue and snapshot in the store."""
    store = _get_store(ctx)
    if not store.supports_clear:
        _fail(f"The {store.name} backend cannot be cleared")
    if not yes:
        click.confirm(f"Delete all issues in the {store.name} store?", abort=True)
    try:
        store.clear()
    except PrdtrackError as e:
        _fail(str(e))
    click.echo("✅ Store cleared")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def summary(ctx: click.Context, as_json: bool):
    """Show the summary of the last run."""
    config = _get_config(ctx)
    data = load_summary(config.summary_path)
    if data is None:
        _fail(f"No run summary at {config.summary_path}")

    if as_json:
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    click.echo(f"Last run: {data.get('timestamp')} on {data.get('document_path')}")
    click.echo(f"  Mode:      {data.get('mode')}")
    click.echo(f"  Updated:   {data.get('updated')}")
    click.echo(f"  Created:   {data.get('created')}")
    click.echo(f"  Unchanged: {data.get('unchanged')}")
    failures = data.get("failures") or []
    if failures:
        click.echo(f"  Failures:  {len(failures)}")
    if data.get("rationale"):
        click.echo(f"\n  {data['rationale']}")


if __name__ == "__main__":
    main()
