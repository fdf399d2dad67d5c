"""
Heuristics for classifying changed files into broad categories.

The classifier looks at the path only. It is intentionally simple and
deterministic so that it can be unit tested without a repository or a
language model. The first matching category wins, in the order
test, source, docs, ci, build, config; anything else is ``other``.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath


class FileCategory(str, Enum):
    SOURCE = "source"
    TEST = "test"
    DOCS = "docs"
    CONFIG = "config"
    CI = "ci"
    BUILD = "build"
    OTHER = "other"


TEST_DIRECTORIES = {"test", "tests", "spec", "__tests__"}

SOURCE_EXTENSIONS = {
    ".rs", ".go", ".py", ".js", ".ts", ".tsx", ".jsx", ".java", ".kt", ".scala",
    ".c", ".cpp", ".cc", ".cxx", ".h", ".hpp", ".cs", ".rb", ".php", ".swift",
    ".m", ".mm", ".zig", ".nim", ".lua", ".r", ".sql", ".sh", ".bash", ".zsh",
    ".fish", ".ps1", ".pl", ".pm", ".ex", ".exs", ".erl", ".hrl", ".hs", ".ml",
    ".mli", ".fs", ".fsi", ".fsx", ".clj", ".cljs", ".cljc", ".elm", ".vue",
    ".svelte",
}

DOCS_EXTENSIONS = {".md", ".rst"}
DOCS_DIRECTORIES = {"docs", "doc"}
DOCS_NAME_PREFIXES = ("readme", "changelog")

CI_WORKFLOW_PREFIX = ".github/workflows/"
CI_FILE_NAMES = {".gitlab-ci.yml", ".travis.yml"}

BUILD_FILE_NAMES = {"dockerfile", "makefile", "cmakelists.txt"}

CONFIG_EXTENSIONS = {".json", ".yaml", ".yml", ".toml", ".ini", ".cfg"}
CONFIG_FILE_NAMES = {"cargo.toml", "package.json"}


def _is_test(path: PurePosixPath, name: str) -> bool:
    directories = {part.lower() for part in path.parts[:-1]}
    if directories & TEST_DIRECTORIES:
        return True
    stem = name.split(".", 1)[0]
    return (
        name.startswith("test_")
        or (stem.endswith("_test") and "." in name)
        or ".test." in name
        or ".spec." in name
    )


def categorize_file(file_path: str) -> FileCategory:
    """Classify a changed path into a :class:`FileCategory`.

    Parameters
    ----------
    file_path : str
        Path relative to the repository root, using forward slashes.

    Returns
    -------
    FileCategory
        The first matching category in precedence order.
    """
    path = PurePosixPath(file_path)
    name = path.name.lower()
    ext = path.suffix.lower()
    lowered = file_path.lower()

    if _is_test(path, name):
        return FileCategory.TEST
    if ext in SOURCE_EXTENSIONS:
        return FileCategory.SOURCE
    if (
        ext in DOCS_EXTENSIONS
        or name.startswith(DOCS_NAME_PREFIXES)
        or {part.lower() for part in path.parts[:-1]} & DOCS_DIRECTORIES
    ):
        return FileCategory.DOCS
    if lowered.startswith(CI_WORKFLOW_PREFIX) or name in CI_FILE_NAMES:
        return FileCategory.CI
    if name in BUILD_FILE_NAMES or name.startswith("build."):
        return FileCategory.BUILD
    if ext in CONFIG_EXTENSIONS or name in CONFIG_FILE_NAMES:
        return FileCategory.CONFIG
    return FileCategory.OTHER
