import unittest

from ai_fdocs.sources.html_markdown import (
    absolute_href,
    clean_markdown_whitespace,
    extract_docs_links,
    extract_main_content,
    extract_title,
)

PAGE = """<!DOCTYPE html>
<html>
<head><title>serde 1.0.210 - Docs.rs</title><style>body { color: red; }</style></head>
<body>
<nav><a href="/serde/1.0.210/serde/all.html">All items</a></nav>
<div id="main-content">
  <h1>Crate serde</h1>
  <p>Serde is a <a href="/serde/1.0.210/serde/de/index.html">framework</a> for data &amp; structures.</p>
  <p>See <a href="#modules">modules</a>.</p>
  <pre>fn main() {
    let x = 1;
}</pre>
  <script>track();</script>
  <ul><li>one</li><li>two</li></ul>
</div>
<a href="/serde/1.0.210/serde/de/index.html">again</a>
<a href="/tokio/1.0.0/tokio/">other crate</a>
</body>
</html>
"""


class ExtractMainContentTests(unittest.TestCase):
    def test_renders_primary_container(self) -> None:
        result = extract_main_content(PAGE, "https://docs.rs")

        self.assertTrue(result.startswith("Crate serde"))
        self.assertIn(
            "Serde is a framework (https://docs.rs/serde/1.0.210/serde/de/index.html) for data & structures.",
            result,
        )
        self.assertIn("See modules.", result)
        self.assertIn("```rust\nfn main() {\n    let x = 1;\n}\n```", result)
        self.assertIn("one\n\ntwo", result)
        self.assertNotIn("track()", result)
        self.assertNotIn("All items", result)

    def test_falls_back_to_docblock(self) -> None:
        html = '<div class="docblock"><p>Block docs</p></div>'

        self.assertEqual(extract_main_content(html, "https://docs.rs"), "Block docs")

    def test_returns_empty_without_known_container(self) -> None:
        self.assertEqual(extract_main_content("<div><p>x</p></div>", "https://docs.rs"), "")


class PageMetadataTests(unittest.TestCase):
    def test_extract_title(self) -> None:
        self.assertEqual(extract_title(PAGE), "serde 1.0.210 - Docs.rs")
        self.assertIsNone(extract_title("<html><body></body></html>"))

    def test_extract_docs_links_is_unique_and_version_scoped(self) -> None:
        links = extract_docs_links("serde", "1.0.210", PAGE)

        self.assertEqual(
            links,
            ["/serde/1.0.210/serde/all.html", "/serde/1.0.210/serde/de/index.html"],
        )

    def test_absolute_href(self) -> None:
        self.assertEqual(absolute_href("/a", "https://docs.rs/"), "https://docs.rs/a")
        self.assertEqual(absolute_href("https://x.dev/a", "https://docs.rs"), "https://x.dev/a")
        self.assertEqual(absolute_href("relative.html", "https://docs.rs"), "relative.html")


class CleanWhitespaceTests(unittest.TestCase):
    def test_collapses_blank_runs_outside_code(self) -> None:
        text = "  a  \n\n\n\nb\n```rust\n    indented\n\n\n```\n"

        self.assertEqual(clean_markdown_whitespace(text), "a\n\nb\n```rust\n    indented\n\n\n```")


if __name__ == "__main__":
    unittest.main()
