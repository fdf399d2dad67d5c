import unittest
from pathlib import Path
import tempfile

from cmt.analysis.analyzer import analyze
from cmt.diff.models import ChangeKind, DiffStats, FileChange
from cmt.prompts.builder import build_user_prompt, read_doc_excerpt, system_prompt


ANALYSIS = analyze([FileChange("src/app.py", ChangeKind.MODIFIED, insertions=3, deletions=1)])
SMALL = DiffStats(files_changed=1, insertions=3, deletions=1)


def build(**overrides):
    kwargs = dict(
        diff_text="diff --git a/src/app.py b/src/app.py\n@@ -1 +1 @@\n-a\n+b\n",
        analysis=ANALYSIS,
        stats=SMALL,
        readme_excerpt="# Project\nDoes things.",
        branch="feature/login",
        recent_commits=["feat: add api", "fix: handle empty input"],
        include_recent_commits=True,
        hint="Mention the bug ticket",
    )
    kwargs.update(overrides)
    return build_user_prompt(**kwargs)


class TestBuildUserPrompt(unittest.TestCase):
    def test_section_order(self) -> None:
        context = build()
        self.assertEqual(context.names, ["readme", "branch", "recent_commits", "analysis", "hint", "diff"])
        rendered = context.render()
        positions = [rendered.index(title) for title in (
            "# Project Description",
            "# Current Branch",
            "# Recent Commits",
            "# Pre-Analysis of Changes",
            "# Additional Context",
            "# Staged Changes",
        )]
        self.assertEqual(positions, sorted(positions))
        self.assertIn("- feat: add api\n- fix: handle empty input", rendered)
        self.assertIn("```diff\ndiff --git a/src/app.py b/src/app.py", rendered)

    def test_missing_sections_are_omitted(self) -> None:
        context = build(readme_excerpt=None, branch=None, recent_commits=[], hint=None)
        self.assertEqual(context.names, ["analysis", "diff"])
        self.assertNotIn("Project Description", context.render())

    def test_default_branches_are_omitted(self) -> None:
        for branch in ("main", "master"):
            self.assertIsNone(build(branch=branch).get("branch"))
        self.assertEqual(build(branch="develop").get("branch").body, "develop")

    def test_recent_commits_switch(self) -> None:
        self.assertIsNone(build(include_recent_commits=False).get("recent_commits"))

    def test_recent_commits_kept_for_large_change_set(self) -> None:
        stats = DiffStats(files_changed=120, insertions=20_000, deletions=5_000)
        self.assertIsNotNone(build(stats=stats).get("recent_commits"))

    def test_recent_commits_dropped_for_very_large_change_set(self) -> None:
        many_files = DiffStats(files_changed=160, insertions=1_000, deletions=0)
        self.assertIsNone(build(stats=many_files).get("recent_commits"))
        many_changes = DiffStats(files_changed=10, insertions=40_000, deletions=10_001)
        self.assertIsNone(build(stats=many_changes).get("recent_commits"))
        self.assertEqual(build(stats=many_files).names, ["readme", "branch", "analysis", "hint", "diff"])

    def test_blank_hint_is_omitted(self) -> None:
        self.assertIsNone(build(hint="   ").get("hint"))


class TestSystemPrompt(unittest.TestCase):
    def test_mentions_schema_fields_and_types(self) -> None:
        prompt = system_prompt()
        for word in ('"type"', '"subject"', '"details"', '"scope"', "feat", "perf"):
            self.assertIn(word, prompt)


class TestReadDocExcerpt(unittest.TestCase):
    def test_first_lines_of_readme(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "README.md").write_text("\n".join(f"line {i}" for i in range(100)), encoding="utf-8")
            excerpt = read_doc_excerpt(root, max_lines=40)
        self.assertEqual(excerpt.splitlines()[0], "line 0")
        self.assertEqual(excerpt.splitlines()[-1], "line 39")
        self.assertEqual(len(excerpt.splitlines()), 40)

    def test_missing_or_empty_readme(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            self.assertIsNone(read_doc_excerpt(root))
            (root / "README.rst").write_text("\n\n", encoding="utf-8")
            self.assertIsNone(read_doc_excerpt(root))


if __name__ == "__main__":
    unittest.main()
