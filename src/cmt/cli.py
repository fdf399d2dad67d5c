"""
Command line interface for cmt.

This module defines the ``main`` function which is used as the entry
point when executing the ``cmt`` command. It resolves the configuration,
runs the diff-to-prompt pipeline on the staged changes, asks the local
model for a commit message, renders it with a template and optionally
creates the commit. Each failure family maps to its own exit code.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import click

from cmt import __version__
from cmt.config.loader import PROJECT_CONFIG_FILENAME, ConfigError, init_config, load_config
from cmt.diff.models import DiffStats
from cmt.llm.ollama_client import (
    REASONING_DEPTHS,
    GenerateOptions,
    InvalidModelError,
    OllamaClient,
    ProviderError,
    ProviderTimeoutError,
)
from cmt.pipeline import PipelineConfig, PipelineResult, generate_commit_message, run_pipeline
from cmt.templates.renderer import TemplateError, TemplateRenderer
from cmt.vcs.git_client import GitClient, GitOperationError, NoChangesError, NoRepositoryError

# Create a module-level logger. Attach a null handler and disable
# propagation to avoid logging errors when the root logger's stream is
# closed (such as during unit tests).
logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_INVALID_USAGE = 2
EXIT_NO_REPO = 3
EXIT_NO_CHANGES = 4
EXIT_CONFIG_ERROR = 5
EXIT_VCS_FAILURE = 6
EXIT_LLM_FAILURE = 7
EXIT_INVALID_MODEL = 8
EXIT_TEMPLATE_ERROR = 9
EXIT_DECLINED = 10


# ---------------------------------------------------------------------------
# Progress and status display utilities
# ---------------------------------------------------------------------------

class ProgressIndicator:
    """Simple progress indicator for user feedback.

    Nothing is printed when ``enabled`` is False, which keeps
    ``--message-only`` output clean.
    """

    def __init__(self, message: str, enabled: bool = True):
        self.message = message
        self.enabled = enabled
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        if self.enabled:
            click.echo(f"⠋ {self.message}...", nl=False)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self.enabled:
            return False
        elapsed = time.time() - self.start_time
        if exc_type is None:
            click.echo(f"\r✓ {self.message} (took {elapsed:.1f}s)")
        else:
            click.echo(f"\r✗ {self.message} (failed after {elapsed:.1f}s)")
        return False


def print_info(message: str, indent: int = 0):
    """Print an info message."""
    prefix = "  " * indent
    click.echo(f"{prefix}ℹ {message}", err=False)


def print_success(message: str, indent: int = 0):
    """Print a success message."""
    prefix = "  " * indent
    click.echo(f"{prefix}✓ {message}", err=False)


def print_warning(message: str, indent: int = 0):
    """Print a warning message."""
    prefix = "  " * indent
    click.echo(f"{prefix}⚠ {message}", err=False)


def print_error(message: str, indent: int = 0):
    """Print an error message."""
    prefix = "  " * indent
    click.echo(f"{prefix}✗ {message}", err=True)


def print_message_box(message: str):
    """Print the commit message inside a box."""
    click.echo("   ┌" + "─" * 74 + "┐")
    for line in message.splitlines() or [""]:
        display_line = line[:72] if len(line) > 72 else line
        click.echo(f"   │ {display_line.ljust(72)} │")
    click.echo("   └" + "─" * 74 + "┘")


# ---------------------------------------------------------------------------
# Core functionality
# ---------------------------------------------------------------------------

def apply_overrides(config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``config`` updated with the options given on the command line.

    Options left at None were not given and keep the configured value.
    """
    merged = dict(config)
    merged.update({key: value for key, value in overrides.items() if value is not None})
    return merged


def print_diff_stats(stats: DiffStats, result: PipelineResult, requested_context: int, requested_max_lines: int):
    """Print the statistics of the staged change and what was left out of the prompt."""
    print_success(stats.describe())
    if result.skipped_files:
        print_info(
            f"Content of {len(result.skipped_files)} file(s) not sent to the model: "
            + ", ".join(result.skipped_files[:5])
            + (" ..." if len(result.skipped_files) > 5 else ""),
            indent=1,
        )
    effective = result.effective_config
    if effective.context_lines != requested_context or effective.max_lines_per_file != requested_max_lines:
        print_info(
            f"Large change set: using {effective.context_lines} context lines and at most "
            f"{effective.max_lines_per_file} lines per file",
            indent=1,
        )
    if stats.has_unstaged_remainder:
        print_warning("There are unstaged changes that will not be part of this commit.")


def review_message(message: str) -> Optional[str]:
    """Interactively confirm the commit message.

    Returns
    -------
    Optional[str]
        The message to commit (possibly edited), or ``None`` if declined.
    """
    while True:
        choice = click.prompt(
            "   Choose action",
            type=click.Choice(['A', 'E', 'D', 'a', 'e', 'd'], case_sensitive=False),
            default='A',
            show_choices=True,
            show_default=True,
        ).strip().lower()

        if choice == 'a':
            return message
        if choice == 'd':
            return None
        edited = click.edit(message)
        if edited is None:
            print_warning("Editor closed without saving, using original")
            return message
        edited = edited.strip()
        if edited:
            print_success("Message edited successfully")
            return edited
        print_warning("Empty message, using original")
        return message


@click.command()
@click.option("--message-only", is_flag=True, help="Print only the commit message.")
@click.option("--no-diff-stats", is_flag=True, help="Do not show statistics of the staged change.")
@click.option("--show-raw-diff", is_flag=True, help="Show the diff text sent to the model.")
@click.option("--context-lines", type=click.IntRange(min=1), help="Context lines around each change.")
@click.option("--max-lines-per-file", type=click.IntRange(min=1), help="Maximum diff lines per file.")
@click.option("--max-line-width", type=click.IntRange(min=1), help="Maximum characters per diff line.")
@click.option("--model", help="Ollama model to use.")
@click.option("--temperature", type=click.FloatRange(0.0, 2.0), help="Sampling temperature.")
@click.option("--hint", help="Additional context for the model.")
@click.option("--template", help="Template used to render the message.")
@click.option("--no-recent-commits", is_flag=True, help="Do not include recent commit subjects.")
@click.option("--recent-commits-count", type=click.IntRange(min=0), help="Number of recent commits to include.")
@click.option("--thinking", type=click.Choice(REASONING_DEPTHS), help="Reasoning depth for thinking models.")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="Seconds to wait for the model.")
@click.option("--commit", "do_commit", is_flag=True, help="Create the commit with the generated message.")
@click.option("--yes", "yes", is_flag=True, help="Commit without asking for confirmation.")
@click.option("--list-templates", is_flag=True, help="List available templates and exit.")
@click.option("--show-template", metavar="NAME", help="Print the source of a template and exit.")
@click.option("--create-template", metavar="NAME", help="Save a user template and exit (requires --template-content).")
@click.option("--template-content", help="Jinja2 source for --create-template.")
@click.option("--list-models", is_flag=True, help="List models installed on the Ollama server and exit.")
@click.option("--init-config", "init_config_flag", is_flag=True, help=f"Write an example {PROJECT_CONFIG_FILENAME} and exit.")
@click.option(
    "--config-path",
    type=click.Path(dir_okay=False, path_type=Path),
    help=f"Configuration file to use instead of the nearest {PROJECT_CONFIG_FILENAME} (also the target of --init-config).",
)
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="cmt")
def main(
    message_only: bool,
    no_diff_stats: bool,
    show_raw_diff: bool,
    context_lines: Optional[int],
    max_lines_per_file: Optional[int],
    max_line_width: Optional[int],
    model: Optional[str],
    temperature: Optional[float],
    hint: Optional[str],
    template: Optional[str],
    no_recent_commits: bool,
    recent_commits_count: Optional[int],
    thinking: Optional[str],
    timeout: Optional[float],
    do_commit: bool,
    yes: bool,
    list_templates: bool,
    show_template: Optional[str],
    create_template: Optional[str],
    template_content: Optional[str],
    list_models: bool,
    init_config_flag: bool,
    config_path: Optional[Path],
    verbose: bool,
) -> None:
    """Generate a commit message for the staged changes with a local LLM."""
    # Configure logging. Use force=True to ensure handlers are reconfigured
    # on subsequent invocations (important for tests).
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        force=True,
    )
    cwd = Path.cwd()
    chatty = not message_only

    try:
        if init_config_flag:
            try:
                path = init_config(config_path or cwd / PROJECT_CONFIG_FILENAME)
            except ConfigError as exc:
                print_error(f"Configuration error: {exc}")
                raise click.exceptions.Exit(EXIT_CONFIG_ERROR)
            print_success(f"Wrote example configuration to {path}")
            raise click.exceptions.Exit(EXIT_SUCCESS)

        renderer = TemplateRenderer()
        if show_template:
            try:
                source = renderer.source(show_template)
            except TemplateError as exc:
                print_error(f"Template error: {exc}")
                raise click.exceptions.Exit(EXIT_TEMPLATE_ERROR)
            click.echo(source.rstrip("\n"))
            raise click.exceptions.Exit(EXIT_SUCCESS)
        if create_template:
            if template_content is None:
                raise click.UsageError("--template-content is required with --create-template")
            try:
                path = renderer.create(create_template, template_content)
            except TemplateError as exc:
                print_error(f"Template error: {exc}")
                raise click.exceptions.Exit(EXIT_TEMPLATE_ERROR)
            print_success(f"Template '{create_template}' saved to {path}")
            print_info(f"Use it with: cmt --template {create_template}", indent=1)
            raise click.exceptions.Exit(EXIT_SUCCESS)

        try:
            config = load_config(cwd, config_path=config_path)
        except ConfigError as exc:
            print_error(f"Configuration error: {exc}")
            raise click.exceptions.Exit(EXIT_CONFIG_ERROR)
        config = apply_overrides(
            config,
            {
                "context_lines": context_lines,
                "max_lines_per_file": max_lines_per_file,
                "max_line_width": max_line_width,
                "model": model,
                "temperature": temperature,
                "hint": hint,
                "template": template,
                "include_recent_commits": False if no_recent_commits else None,
                "recent_commits_count": recent_commits_count,
                "reasoning_depth": thinking,
                "request_timeout": timeout,
            },
        )

        if list_templates:
            for name in renderer.list_templates():
                click.echo(name)
            raise click.exceptions.Exit(EXIT_SUCCESS)

        provider = OllamaClient(
            base_url=config["base_url"],
            port=config["port"],
            model=config["model"],
            request_timeout=float(config["request_timeout"]),
            max_tokens=config.get("max_tokens"),
        )
        if list_models:
            try:
                models = provider.list_models()
            except ProviderError as exc:
                print_error(f"LLM error: {exc}")
                print_info("Make sure Ollama is running and accessible", indent=1)
                raise click.exceptions.Exit(EXIT_LLM_FAILURE)
            for name in models:
                click.echo(f"- {name}")
            raise click.exceptions.Exit(EXIT_SUCCESS)

        if config["template"] not in renderer.list_templates():
            print_error(
                f"Unknown template '{config['template']}'. "
                f"Available templates: {', '.join(renderer.list_templates())}"
            )
            raise click.exceptions.Exit(EXIT_TEMPLATE_ERROR)

        # Repository and pipeline
        try:
            client = GitClient.discover(cwd)
        except NoRepositoryError as exc:
            print_error(f"{exc}")
            raise click.exceptions.Exit(EXIT_NO_REPO)

        pipeline_config = PipelineConfig.from_mapping(config)
        try:
            with ProgressIndicator("Analyzing staged changes", enabled=chatty):
                result = run_pipeline(client, pipeline_config)
        except NoChangesError as exc:
            if chatty:
                print_warning(f"{exc}")
            else:
                print_error(f"{exc}")
            raise click.exceptions.Exit(EXIT_NO_CHANGES)
        except GitOperationError as exc:
            print_error(f"VCS error: {exc}")
            raise click.exceptions.Exit(EXIT_VCS_FAILURE)

        if chatty and not no_diff_stats:
            print_diff_stats(
                result.diff_stats,
                result,
                pipeline_config.context_lines,
                pipeline_config.max_lines_per_file,
            )
        if chatty and show_raw_diff:
            click.echo("\n" + result.diff_text)

        # Model call
        options = GenerateOptions(
            model=config["model"],
            temperature=float(config["temperature"]),
            reasoning_depth=config.get("reasoning_depth"),
        )
        try:
            provider.validate_model(options.model or provider.model)
            with ProgressIndicator(f"Generating commit message with {config['model']}", enabled=chatty):
                structured = generate_commit_message(provider, result, options, timeout=provider.request_timeout)
        except InvalidModelError as exc:
            print_error(f"{exc}")
            raise click.exceptions.Exit(EXIT_INVALID_MODEL)
        except ProviderTimeoutError as exc:
            print_error(f"LLM timeout: {exc}")
            raise click.exceptions.Exit(EXIT_LLM_FAILURE)
        except ProviderError as exc:
            print_error(f"LLM error: {exc}")
            print_info("Make sure Ollama is running and accessible", indent=1)
            raise click.exceptions.Exit(EXIT_LLM_FAILURE)

        try:
            message = renderer.render(config["template"], structured)
        except TemplateError as exc:
            print_error(f"Template error: {exc}")
            raise click.exceptions.Exit(EXIT_TEMPLATE_ERROR)

        if message_only:
            click.echo(message)
        else:
            click.echo("\n💬 Proposed commit message:")
            print_message_box(message)

        if do_commit:
            if not yes:
                click.echo("   A = Accept | E = Edit | D = Decline\n")
                reviewed = review_message(message)
                if reviewed is None:
                    print_warning("Commit declined; nothing was committed.")
                    raise click.exceptions.Exit(EXIT_DECLINED)
                message = reviewed
            try:
                client.commit(message)
            except GitOperationError as exc:
                print_error(f"Failed to commit changes: {exc}")
                raise click.exceptions.Exit(EXIT_VCS_FAILURE)
            if chatty:
                print_success("Changes committed")

        raise click.exceptions.Exit(EXIT_SUCCESS)

    except (click.exceptions.Exit, click.UsageError):
        # Click uses its own Exit exception; re-raise to let Click handle it
        raise
    except Exception as exc:
        # Catch any other unhandled errors
        logging.exception("Unhandled error: %s", exc)
        print_error(f"Unexpected error: {exc}")
        raise click.exceptions.Exit(EXIT_GENERIC_ERROR)
