import pytest

from cmt.diff.file_filter import is_skippable, partition
from cmt.diff.models import ChangeKind, FileChange


@pytest.mark.parametrize(
    "path",
    [
        "package-lock.json",
        "web/pnpm-lock.yaml",
        "frontend/yarn.lock",
        "Cargo.lock",
        "CARGO.LOCK",
        "poetry.lock",
        "static/app.js.map",
        "static/app.min.js",
        "static/theme.min.css",
        "assets/logo.PNG",
        "assets/photo.jpeg",
        "favicon.ico",
        "icons/arrow.svg",
        "banner.avif",
        "dist/bundle.js",
        "build/output.o",
    ],
)
def test_skipped_paths(path):
    assert is_skippable(path)


@pytest.mark.parametrize(
    "path",
    [
        "src/main.py",
        "README.md",
        "src/dist/helpers.py",
        "builder/config.py",
        "docs/build.md",
        "lockfile.txt",
        "app.js",
        "styles/site.css",
    ],
)
def test_kept_paths(path):
    assert not is_skippable(path)


def test_decision_depends_only_on_the_path():
    assert is_skippable("yarn.lock", ChangeKind.DELETED) == is_skippable("yarn.lock", ChangeKind.ADDED)


def test_partition_keeps_order_and_is_idempotent():
    files = [
        FileChange("src/a.py", ChangeKind.MODIFIED, insertions=3),
        FileChange("package-lock.json", ChangeKind.MODIFIED, insertions=500),
        FileChange("src/b.py", ChangeKind.ADDED, insertions=1),
        FileChange("logo.png", ChangeKind.ADDED, binary=True),
    ]
    kept, skipped = partition(files)
    assert [f.path for f in kept] == ["src/a.py", "src/b.py"]
    assert [f.path for f in skipped] == ["package-lock.json", "logo.png"]

    kept_again, skipped_again = partition(kept)
    assert kept_again == kept
    assert skipped_again == []

    reversed_kept, _ = partition(list(reversed(files)))
    assert [f.path for f in reversed_kept] == ["src/b.py", "src/a.py"]
