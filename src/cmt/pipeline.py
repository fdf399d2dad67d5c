"""
The diff-to-prompt pipeline and the single model call.

:func:`run_pipeline` is synchronous and pure apart from the read-only Git
and README access: it extracts the staged change set, filters and
truncates the diff, analyses the remaining files and assembles the
prompts. :func:`generate_with_timeout` performs the one model call of a
run and bounds it with a timeout.
"""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from cmt.analysis.analyzer import AnalysisSummary, analyze
from cmt.diff.file_filter import partition
from cmt.diff.models import DiffStats
from cmt.diff.truncation import TruncationConfig, render_diff, tighten
from cmt.llm.ollama_client import GenerateOptions, OllamaClient, ProviderTimeoutError
from cmt.llm.result import StructuredResult
from cmt.llm.validator import finalize
from cmt.prompts.builder import (
    PromptContext,
    build_user_prompt,
    include_recent_commits_for,
    read_doc_excerpt,
    system_prompt,
)
from cmt.vcs.git_client import GitClient


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


@dataclass(frozen=True)
class PipelineConfig:
    """Fully resolved inputs of one pipeline run."""

    context_lines: int = 20
    max_lines_per_file: int = 2000
    max_line_width: int = 500
    include_recent_commits: bool = True
    recent_commits_count: int = 10
    hint: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PipelineConfig":
        """Pick the pipeline settings out of a merged configuration mapping."""
        fields = cls.__dataclass_fields__
        return cls(**{key: data[key] for key in fields if key in data})

    def truncation(self) -> TruncationConfig:
        return TruncationConfig(
            context_lines=self.context_lines,
            max_lines_per_file=self.max_lines_per_file,
            max_line_width=self.max_line_width,
        )


@dataclass(frozen=True)
class PipelineResult:
    """Everything produced by :func:`run_pipeline`.

    ``diff_stats`` always describes the complete staged change, including
    files whose content was skipped.
    """

    diff_stats: DiffStats
    analysis: AnalysisSummary
    user_prompt: str
    system_prompt: str
    effective_config: TruncationConfig
    skipped_files: Tuple[str, ...]
    diff_text: str
    prompt: PromptContext


def run_pipeline(client: GitClient, config: PipelineConfig) -> PipelineResult:
    """Build the prompts for the staged changes of ``client``'s repository.

    Raises
    ------
    ValueError
        If the truncation bounds in ``config`` are not positive.
    GitOperationError
        If reading the repository fails (including ``NoChangesError``).
        No prompt is built in that case.
    """
    requested = config.truncation()
    change_set = client.read_staged_change_set(requested.context_lines)
    stats = change_set.stats()
    effective = tighten(requested, change_set)

    kept, skipped = partition(change_set.files)
    if skipped:
        logger.debug("Skipping content of %d files: %s", len(skipped), ", ".join(f.path for f in skipped))
    diff_text = render_diff(kept, effective)
    analysis = analyze(kept)

    recent = []
    if config.include_recent_commits and include_recent_commits_for(stats):
        recent = client.read_recent_commit_subjects(config.recent_commits_count)
    context = build_user_prompt(
        diff_text=diff_text,
        analysis=analysis,
        stats=stats,
        readme_excerpt=read_doc_excerpt(client.repo_root),
        branch=client.read_current_branch_name(),
        recent_commits=recent,
        include_recent_commits=config.include_recent_commits,
        hint=config.hint,
    )
    logger.debug("Prompt sections: %s", ", ".join(context.names))
    return PipelineResult(
        diff_stats=stats,
        analysis=analysis,
        user_prompt=context.render(),
        system_prompt=system_prompt(),
        effective_config=effective,
        skipped_files=tuple(f.path for f in skipped),
        diff_text=diff_text,
        prompt=context,
    )


def generate_with_timeout(
    provider: OllamaClient,
    system: str,
    user: str,
    options: GenerateOptions,
    timeout: Optional[float] = None,
) -> StructuredResult:
    """Call ``provider.generate`` once, waiting at most ``timeout`` seconds.

    Raises
    ------
    ProviderTimeoutError
        If no reply arrives in time. The worker thread is abandoned.
    ProviderError
        Whatever the provider raises is propagated unchanged.
    """
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="cmt-llm")
    try:
        future = executor.submit(provider.generate, system, user, options)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            raise ProviderTimeoutError(f"No reply from the model within {timeout}s") from exc
    finally:
        executor.shutdown(wait=False)


def generate_commit_message(
    provider: OllamaClient,
    result: PipelineResult,
    options: GenerateOptions,
    timeout: Optional[float] = None,
) -> StructuredResult:
    """Ask the model for a commit message and normalize the reply."""
    raw = generate_with_timeout(provider, result.system_prompt, result.user_prompt, options, timeout)
    logger.debug("Raw model reply: %s", raw)
    return finalize(raw)
