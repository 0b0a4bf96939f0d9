from __future__ import annotations

import re
from typing import Optional

from bs4 import BeautifulSoup, Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

# Tried in order; the first container found wins.
MAIN_CONTENT_SELECTORS = ("div#main-content", "div.docblock")

BLOCK_TAGS = {
    "p",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "li",
    "ul",
    "ol",
    "div",
    "section",
    "details",
    "summary",
    "blockquote",
    "table",
    "tr",
    "dt",
    "dd",
}

SKIPPED_TAGS = {"script", "style", "noscript", "svg", "button"}

_FENCE = "```"


def absolute_href(href: str, base_url: str) -> str:
    if href.startswith("http"):
        return href
    if href.startswith("/"):
        return f"{base_url.rstrip('/')}{href}"
    return href


def extract_title(html: str) -> Optional[str]:
    soup = BeautifulSoup(html, "html.parser")
    if soup.title is None:
        return None
    title = soup.title.get_text().strip()
    return title or None


def extract_docs_links(package_name: str, version: str, html: str) -> list[str]:
    """Return unique same-version documentation hrefs in document order."""
    prefix = f"/{package_name}/{version}/"
    soup = BeautifulSoup(html, "html.parser")
    links: list[str] = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if href.startswith(prefix) and href not in links:
            links.append(href)
    return links


def _render_node(node, out: list[str], base_url: str) -> None:
    if isinstance(node, (Comment, Doctype, Declaration, ProcessingInstruction)):
        return
    if isinstance(node, NavigableString):
        out.append(str(node))
        return
    if not isinstance(node, Tag) or node.name in SKIPPED_TAGS:
        return

    if node.name == "pre":
        code = node.get_text().strip("\n")
        out.append(f"\n{_FENCE}rust\n{code}\n{_FENCE}\n")
        return
    if node.name == "br":
        out.append("\n")
        return

    is_block = node.name in BLOCK_TAGS
    if is_block:
        out.append("\n")
    for child in node.children:
        _render_node(child, out, base_url)
    if node.name == "a":
        href = (node.get("href") or "").strip()
        if href and not href.startswith("#"):
            out.append(f" ({absolute_href(href, base_url)})")
    if is_block:
        out.append("\n")


def clean_markdown_whitespace(text: str) -> str:
    """Trim lines and collapse blank runs to one blank line. Fenced code keeps its indentation."""
    lines: list[str] = []
    last_was_empty = False
    in_code = False
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith(_FENCE):
            in_code = not in_code
            lines.append(stripped)
            last_was_empty = False
            continue
        if in_code:
            lines.append(line.rstrip())
            continue
        if not stripped:
            if not last_was_empty:
                lines.append("")
                last_was_empty = True
            continue
        lines.append(stripped)
        last_was_empty = False
    return "\n".join(lines).strip()


def extract_main_content(html: str, base_url: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for selector in MAIN_CONTENT_SELECTORS:
        container = soup.select_one(selector)
        if container is None:
            continue
        out: list[str] = []
        _render_node(container, out, base_url)
        return clean_markdown_whitespace(re.sub(r"\r\n?", "\n", "".join(out)))
    return ""
