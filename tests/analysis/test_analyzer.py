import unittest

from cmt.analysis.analyzer import TYPE_RULES, Tier, analyze, suggest_scope, CategorizedFile
from cmt.analysis.change_classifier import FileCategory
from cmt.diff.models import ChangeKind, FileChange


def change(path, kind=ChangeKind.MODIFIED, insertions=1, deletions=0, old_path=None):
    return FileChange(path, kind, insertions=insertions, deletions=deletions, old_path=old_path)


class TestTypeSuggestion(unittest.TestCase):
    def test_readme_only_is_docs(self) -> None:
        summary = analyze([change("README.md", insertions=10, deletions=2)])
        self.assertEqual(summary.files[0].category, FileCategory.DOCS)
        self.assertEqual(summary.suggested_type.commit_type, "docs")
        self.assertEqual(summary.suggested_type.tier, Tier.STRONG)
        self.assertIsNone(summary.suggested_scope)

    def test_new_source_file_is_weak_feat(self) -> None:
        summary = analyze(
            [
                change("src/auth/login.rs", ChangeKind.ADDED, insertions=35),
                change("src/auth/mod.rs", insertions=2),
            ]
        )
        self.assertEqual(summary.suggested_type.commit_type, "feat")
        self.assertEqual(summary.suggested_type.tier, Tier.WEAK)
        self.assertIn("1 new source files added", summary.suggested_type.reasons)

    def test_docs_wins_over_weaker_rules(self) -> None:
        # only markdown files, one newly added and one deleted entirely
        summary = analyze(
            [
                change("docs/guide.md", ChangeKind.ADDED, insertions=0),
                change("docs/old.md", ChangeKind.DELETED, insertions=0, deletions=40),
            ]
        )
        self.assertEqual((summary.suggested_type.commit_type, summary.suggested_type.tier), ("docs", Tier.STRONG))

    def test_single_category_rules(self) -> None:
        cases = {
            "ci": [".github/workflows/ci.yml", ".travis.yml"],
            "test": ["tests/test_app.py"],
            "build": ["Dockerfile", "Makefile"],
            "chore": ["package.json", "Cargo.toml"],
        }
        for commit_type, paths in cases.items():
            summary = analyze([change(path) for path in paths])
            self.assertEqual(summary.suggested_type.commit_type, commit_type, paths)
            self.assertEqual(summary.suggested_type.tier, Tier.STRONG)

    def test_pure_renames_are_strong_refactor(self) -> None:
        summary = analyze(
            [
                change("src/new_a.py", ChangeKind.RENAMED, insertions=0, old_path="src/a.py"),
                change("lib/new_b.py", ChangeKind.RENAMED, insertions=0, old_path="lib/b.py"),
            ]
        )
        self.assertEqual((summary.suggested_type.commit_type, summary.suggested_type.tier), ("refactor", Tier.STRONG))

    def test_rename_with_new_file_is_feat(self) -> None:
        summary = analyze(
            [
                change("src/new_a.py", ChangeKind.RENAMED, insertions=0, old_path="src/a.py"),
                change("src/b.py", ChangeKind.ADDED, insertions=20),
            ]
        )
        self.assertEqual((summary.suggested_type.commit_type, summary.suggested_type.tier), ("feat", Tier.WEAK))

    def test_pure_deletions_are_weak_refactor(self) -> None:
        summary = analyze(
            [
                change("src/legacy.py", ChangeKind.DELETED, insertions=0, deletions=120),
                change("src/app.py", insertions=0, deletions=4),
            ]
        )
        self.assertEqual((summary.suggested_type.commit_type, summary.suggested_type.tier), ("refactor", Tier.WEAK))

    def test_no_rule_matches(self) -> None:
        summary = analyze([change("src/app.py", insertions=3, deletions=1), change("README.md")])
        self.assertIsNone(summary.suggested_type)
        self.assertIsNone(analyze([]).suggested_type)

    def test_rule_table_order(self) -> None:
        self.assertEqual(
            [(rule.commit_type, rule.tier) for rule in TYPE_RULES],
            [
                ("docs", Tier.STRONG),
                ("ci", Tier.STRONG),
                ("test", Tier.STRONG),
                ("build", Tier.STRONG),
                ("chore", Tier.STRONG),
                ("refactor", Tier.STRONG),
                ("feat", Tier.WEAK),
                ("refactor", Tier.WEAK),
            ],
        )


class TestSuggestScope(unittest.TestCase):
    def _files(self, *specs):
        return [CategorizedFile.from_change(change(path, insertions=n)) for path, n in specs]

    def test_dominant_component(self) -> None:
        files = self._files(("packages/api/src/server.ts", 90), ("packages/web/src/app.ts", 5), ("README.md", 4))
        self.assertEqual(suggest_scope(files), "api")

    def test_no_dominant_component(self) -> None:
        files = self._files(("apps/web/index.ts", 50), ("apps/admin/index.ts", 50))
        self.assertIsNone(suggest_scope(files))

    def test_exactly_eighty_percent_is_not_enough(self) -> None:
        files = self._files(("libs/core/a.py", 80), ("src/b.py", 20))
        self.assertIsNone(suggest_scope(files))

    def test_only_monorepo_roots(self) -> None:
        files = self._files(("src/auth/login.rs", 35), ("src/auth/mod.rs", 2))
        self.assertIsNone(suggest_scope(files))

    def test_zero_churn(self) -> None:
        files = [CategorizedFile.from_change(change("packages/api/a.py", ChangeKind.RENAMED, insertions=0))]
        self.assertIsNone(suggest_scope(files))


class TestAnalysisSummary(unittest.TestCase):
    def test_category_counts(self) -> None:
        summary = analyze(
            [
                change("src/a.py", ChangeKind.ADDED, insertions=10),
                change("src/b.py", ChangeKind.MODIFIED, insertions=3, deletions=2),
                change("README.md", ChangeKind.MODIFIED, insertions=1, deletions=1),
            ]
        )
        source = summary.category_counts[FileCategory.SOURCE]
        self.assertEqual((source.files, source.files_added, source.files_modified), (2, 1, 1))
        self.assertEqual((source.insertions, source.deletions), (13, 2))
        self.assertEqual(list(summary.category_counts), [FileCategory.SOURCE, FileCategory.DOCS])
        self.assertEqual((summary.total_files, summary.total_insertions, summary.total_deletions), (3, 14, 3))

    def test_markdown(self) -> None:
        summary = analyze(
            [
                change("src/auth/login.rs", ChangeKind.ADDED, insertions=35),
                change("src/new.rs", ChangeKind.RENAMED, insertions=1, old_path="src/old.rs"),
            ]
        )
        text = summary.to_markdown()
        self.assertIn("## Change Summary\n2 files changed: +36 insertions, -0 deletions", text)
        self.assertIn("- source: 2 files (1 added, 1 renamed) [+36/-0]", text)
        self.assertIn("+ src/auth/login.rs [source]", text)
        self.assertIn("→ src/old.rs → src/new.rs [source]", text)
        self.assertIn("POSSIBLE: This might be a 'feat' commit", text)
        self.assertLess(text.index("src/auth/login.rs"), text.index("src/new.rs"))

    def test_markdown_lists_top_twenty_files(self) -> None:
        summary = analyze([change(f"src/f{i}.py", insertions=i) for i in range(25)])
        text = summary.to_markdown()
        self.assertIn("~ src/f24.py [source]", text)
        self.assertNotIn("src/f4.py", text)
        self.assertIn("+5 other files not listed", text)
        self.assertIn("No clear pattern detected", text)


if __name__ == "__main__":
    unittest.main()
