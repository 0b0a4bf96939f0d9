import unittest
from datetime import date

from ai_fdocs.content.changelog import CHANGELOG_TRUNCATION_MARKER
from ai_fdocs.content.processing import (
    flatten_filename,
    floor_utf8_boundary,
    inject_header,
    process_fetched_file,
    should_inject_header,
    truncate_if_needed,
    truncation_marker,
)
from ai_fdocs.core.models import FetchedFile, ResolvedRef


class TruncateIfNeededTests(unittest.TestCase):
    def test_small_content_is_untouched(self) -> None:
        content, truncated = truncate_if_needed("hello", 1)

        self.assertEqual(content, "hello")
        self.assertFalse(truncated)

    def test_ascii_body_is_cut_at_limit_with_marker(self) -> None:
        content, truncated = truncate_if_needed("a" * 5000, 1)

        self.assertTrue(truncated)
        self.assertTrue(content.endswith(f"{truncation_marker(1)}\n"))
        body = content[: content.index("\n\n[TRUNCATED")]
        self.assertEqual(len(body.encode("utf-8")), 1024)

    def test_never_splits_multibyte_characters(self) -> None:
        # Three bytes per character, so 1024 is not a character boundary.
        content, truncated = truncate_if_needed("€" * 1000, 1)

        self.assertTrue(truncated)
        body = content[: content.index("\n\n[TRUNCATED")]
        self.assertEqual(body, "€" * 341)
        self.assertLessEqual(len(body.encode("utf-8")), 1024)

    def test_floor_utf8_boundary_moves_back_to_lead_byte(self) -> None:
        data = "a€".encode("utf-8")

        self.assertEqual(floor_utf8_boundary(data, 2), 1)
        self.assertEqual(floor_utf8_boundary(data, 1), 1)
        self.assertEqual(floor_utf8_boundary(data, 10), len(data))


class FilenameTests(unittest.TestCase):
    def test_flatten_replaces_separators(self) -> None:
        self.assertEqual(flatten_filename("docs/guide/intro.md"), "docs__guide__intro.md")
        self.assertEqual(flatten_filename("/README.md"), "README.md")

    def test_header_only_for_text_markup(self) -> None:
        self.assertTrue(should_inject_header("README.md"))
        self.assertTrue(should_inject_header("docs/index.HTML"))
        self.assertFalse(should_inject_header("Cargo.toml"))


class InjectHeaderTests(unittest.TestCase):
    def test_adds_provenance_lines(self) -> None:
        result = inject_header(
            "# Serde",
            source="github.com/serde-rs/serde",
            git_ref="v1.0.210",
            original_path="README.md",
            source_url="https://raw.githubusercontent.com/serde-rs/serde/v1.0.210/README.md",
            fetched_on=date(2026, 1, 2),
        )

        lines = result.splitlines()
        self.assertEqual(
            lines[0],
            "<!-- AI-FDOCS: source=github.com/serde-rs/serde ref=v1.0.210 path=README.md fetched=2026-01-02 -->",
        )
        self.assertEqual(
            lines[1],
            "<!-- AI-FDOCS: url=https://raw.githubusercontent.com/serde-rs/serde/v1.0.210/README.md -->",
        )
        self.assertTrue(result.endswith("\n# Serde"))

    def test_fallback_prepends_warning(self) -> None:
        result = inject_header(
            "body",
            source="github.com/o/r",
            git_ref="main",
            original_path="README.md",
            source_url="u",
            fetched_on=date(2026, 1, 2),
            is_fallback=True,
            version="0.3.0",
        )

        first = result.splitlines()[0]
        self.assertIn("WARNING", first)
        self.assertIn("0.3.0", first)
        self.assertIn("'main'", first)


class ProcessFetchedFileTests(unittest.TestCase):
    def test_changelog_is_windowed_before_header(self) -> None:
        changelog = "## 2.1.0\n- a\n\n## 2.0.0\n- b\n\n## 1.9.0\n- c\n\n## 1.8.0\n- d\n"
        fetched = FetchedFile(path="CHANGELOG.md", source_url="https://example.invalid/c", content=changelog)

        content, truncated = process_fetched_file(
            fetched,
            repo="o/r",
            version="2.1.0",
            resolved=ResolvedRef(git_ref="v2.1.0", is_fallback=False),
            max_size_kb=200,
            fetched_on=date(2026, 1, 2),
        )

        self.assertFalse(truncated)
        self.assertTrue(content.startswith("<!-- AI-FDOCS: source=github.com/o/r ref=v2.1.0 path=CHANGELOG.md"))
        self.assertIn(CHANGELOG_TRUNCATION_MARKER, content)
        self.assertNotIn("1.9.0", content)

    def test_non_markup_file_has_no_header(self) -> None:
        fetched = FetchedFile(path="Cargo.toml", source_url="u", content="[package]\n")

        content, _ = process_fetched_file(
            fetched,
            repo="o/r",
            version="1.0.0",
            resolved=ResolvedRef(git_ref="v1.0.0", is_fallback=False),
            max_size_kb=200,
            fetched_on=date(2026, 1, 2),
        )

        self.assertEqual(content, "[package]\n")


if __name__ == "__main__":
    unittest.main()
