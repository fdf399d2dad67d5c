import shutil
import subprocess
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from cmt.diff.models import ChangeKind
from cmt.diff.truncation import TruncationConfig, render_diff
from cmt.vcs.git_client import GitClient, GitOperationError, NoChangesError, NoRepositoryError


class DummyProc(SimpleNamespace):
    args: tuple = ()
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""


NUMSTAT = "10\t2\tREADME.md\0" "0\t0\t\0old.py\0new.py\0" "35\t0\tsrc/auth/login.rs\0"
NAME_STATUS = "M\0README.md\0R100\0old.py\0new.py\0A\0src/auth/login.rs\0"
PATCH = (
    "diff --git a/README.md b/README.md\n"
    "--- a/README.md\n"
    "+++ b/README.md\n"
    "@@ -1,2 +1,2 @@\n"
    "-Old title\n"
    "+New title\n"
    " body\n"
)


def make_fake_run(numstat=NUMSTAT, unstaged=""):
    calls = []

    def fake_run(self, args, check=True):
        calls.append(args)
        if "--numstat" in args:
            return DummyProc(returncode=0, stdout=numstat, stderr="")
        if "--name-status" in args:
            return DummyProc(returncode=0, stdout=NAME_STATUS, stderr="")
        if args[:2] == ["diff", "--name-only"]:
            return DummyProc(returncode=0, stdout=unstaged, stderr="")
        if "--cached" in args:
            return DummyProc(returncode=0, stdout=PATCH, stderr="")
        raise AssertionError(f"Unexpected git command: {args}")

    return fake_run, calls


class TestReadStagedChangeSet(unittest.TestCase):
    def test_builds_change_set_from_git_output(self) -> None:
        fake_run, calls = make_fake_run(unstaged="other.py\n")
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.side_effect = fake_run
            change_set = GitClient(Path("/repo")).read_staged_change_set(context_lines=7)

        self.assertEqual([f.path for f in change_set.files], ["README.md", "new.py", "src/auth/login.rs"])
        readme, renamed, added = change_set.files
        self.assertEqual((readme.kind, readme.insertions, readme.deletions), (ChangeKind.MODIFIED, 10, 2))
        self.assertEqual(len(readme.hunks), 1)
        self.assertEqual((renamed.kind, renamed.old_path), (ChangeKind.RENAMED, "old.py"))
        self.assertTrue(renamed.is_pure_rename)
        self.assertEqual(added.kind, ChangeKind.ADDED)
        self.assertIsNone(added.old_path)
        self.assertEqual((change_set.insertions, change_set.deletions), (45, 2))
        self.assertTrue(change_set.has_unstaged_remainder)
        self.assertTrue(any("-U7" in args for args in calls))

    def test_nothing_staged(self) -> None:
        fake_run, _ = make_fake_run(numstat="")
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.side_effect = fake_run
            with self.assertRaises(NoChangesError):
                GitClient(Path("/repo")).read_staged_change_set(context_lines=3)

    def test_git_failure_propagates(self) -> None:
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.side_effect = GitOperationError("fatal: bad object HEAD")
            with self.assertRaises(GitOperationError):
                GitClient(Path("/repo")).read_staged_change_set(context_lines=3)

    def test_no_changes_is_a_git_operation_error(self) -> None:
        self.assertTrue(issubclass(NoChangesError, GitOperationError))
        self.assertTrue(issubclass(NoRepositoryError, GitOperationError))


class TestBranchAndHistory(unittest.TestCase):
    def test_current_branch(self) -> None:
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.return_value = DummyProc(returncode=0, stdout="feature/login\n", stderr="")
            self.assertEqual(GitClient(Path("/repo")).read_current_branch_name(), "feature/login")

    def test_detached_head(self) -> None:
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.return_value = DummyProc(returncode=1, stdout="", stderr="")
            self.assertIsNone(GitClient(Path("/repo")).read_current_branch_name())

    def test_recent_commit_subjects(self) -> None:
        def fake_run(self, args, check=True):
            if args[0] == "rev-parse":
                return DummyProc(returncode=0, stdout="abc\n", stderr="")
            self.last_args = args
            return DummyProc(returncode=0, stdout="feat: one\nfix: two\n", stderr="")

        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.side_effect = fake_run
            client = GitClient(Path("/repo"))
            self.assertEqual(client.read_recent_commit_subjects(2), ["feat: one", "fix: two"])
            self.assertIn("-n2", client.last_args)

    def test_recent_commit_subjects_without_commits(self) -> None:
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.return_value = DummyProc(returncode=1, stdout="", stderr="")
            self.assertEqual(GitClient(Path("/repo")).read_recent_commit_subjects(5), [])


class TestRunAndDiscover(unittest.TestCase):
    def test_run_raises_on_failure(self) -> None:
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = DummyProc(returncode=128, stdout=b"", stderr=b"fatal: not a git repository")
            with self.assertRaises(GitOperationError) as ctx:
                GitClient(Path("/repo"))._run(["status"])
        self.assertIn("not a git repository", str(ctx.exception))

    def test_run_keeps_carriage_returns(self) -> None:
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(["git"], 0, b"+end\r here\n+caf\xc3\xa9\n", b"")
            result = GitClient(Path("/repo"))._run(["diff", "--cached"])
        self.assertEqual(result.stdout, "+end\r here\n+caf\u00e9\n")
        self.assertNotIn("text", mock_run.call_args[1])

    def test_run_without_git_executable(self) -> None:
        with patch("subprocess.run", side_effect=FileNotFoundError("git")):
            with self.assertRaises(GitOperationError):
                GitClient(Path("/repo"))._run(["status"])

    def test_commit_passes_message(self) -> None:
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.return_value = DummyProc(returncode=0, stdout="", stderr="")
            GitClient(Path("/repo")).commit("feat: add login\n\n- details")
            mock_run.assert_called_once()
            self.assertEqual(mock_run.call_args[0][1], ["commit", "-m", "feat: add login\n\n- details"])


def test_discover_outside_repository(tmp_path):
    with pytest.raises(NoRepositoryError):
        GitClient.discover(tmp_path)


def test_discover_from_subdirectory(tmp_path):
    (tmp_path / ".git").mkdir()
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    assert GitClient.discover(nested).repo_root == tmp_path.resolve()


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_read_staged_change_set_from_real_repository(tmp_path):
    def git(*args):
        subprocess.run(["git", *args], cwd=tmp_path, check=True, capture_output=True)

    git("init", "-q")
    git("config", "user.name", "Test User")
    git("config", "user.email", "test@example.com")
    git("config", "commit.gpgsign", "false")
    (tmp_path / "README.md").write_text("# Title\n\nbody\n", encoding="utf-8")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("print('hi')\n", encoding="utf-8")
    git("add", ".")

    client = GitClient.discover(tmp_path)
    change_set = client.read_staged_change_set(context_lines=3)
    assert sorted(f.path for f in change_set.files) == ["README.md", "src/app.py"]
    assert all(f.kind is ChangeKind.ADDED for f in change_set.files)
    assert change_set.insertions == 4
    assert all(sum(h.insertions for h in f.hunks) == f.insertions for f in change_set.files)
    assert client.read_recent_commit_subjects(5) == []

    git("commit", "-q", "-m", "initial commit")
    (tmp_path / "README.md").write_text("# New title\n\nbody\n", encoding="utf-8")
    git("add", "README.md")
    (tmp_path / "src" / "app.py").write_text("print('bye')\n", encoding="utf-8")

    change_set = client.read_staged_change_set(context_lines=3)
    assert [(f.path, f.insertions, f.deletions) for f in change_set.files] == [("README.md", 1, 1)]
    assert change_set.has_unstaged_remainder
    assert client.read_recent_commit_subjects(5) == ["initial commit"]
    assert client.read_current_branch_name() is not None

    git("commit", "-q", "-m", "second")
    with pytest.raises(NoChangesError):
        client.read_staged_change_set(context_lines=3)


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_line_separator_characters_inside_diff_lines(tmp_path):
    def git(*args):
        subprocess.run(["git", *args], cwd=tmp_path, check=True, capture_output=True)

    git("init", "-q")
    git("config", "user.name", "Test User")
    git("config", "user.email", "test@example.com")
    git("config", "commit.gpgsign", "false")
    git("config", "core.autocrlf", "false")
    path = tmp_path / "f.py"
    path.write_bytes("a\n\x0c\nb\nline\u2028one\nend\r here\n".encode("utf-8"))
    git("add", ".")
    git("commit", "-q", "-m", "initial commit")
    path.write_bytes("a\n\x0c\nc\nline\u2028two\nend\r there\n".encode("utf-8"))
    git("add", ".")

    change_set = GitClient.discover(tmp_path).read_staged_change_set(context_lines=3)
    (change,) = change_set.files
    assert (change.insertions, change.deletions) == (3, 3)
    assert sum(h.insertions for h in change.hunks) == 3
    assert sum(h.deletions for h in change.hunks) == 3

    text = render_diff(change_set.files, TruncationConfig())
    assert "\n-b\n" in text
    assert "\n+c\n" in text
    assert "\n+line\u2028two\n" in text
    assert "\n+end\r there\n" in text
