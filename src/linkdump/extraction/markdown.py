# ABOUTME: Heuristic link-dump parser built on the markdown-it block tree
# ABOUTME: Top-level list items become links, nested lists carry tags/via/notes metadata

import re
import textwrap

import httpx
from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

from linkdump.core.errors import ExtractionError
from linkdump.core.models import Link, LinkSource, Via
from linkdump.utils.logging import get_logger

LIST_TYPES = ("bullet_list", "ordered_list")
CHECKBOX_PATTERN = re.compile(r"^\s*(?:\\\[[ xX]\\\]|\[[ xX]\])\s*")
TOKEN_PATTERN = re.compile(r"[^\-: ]+")
TRIM_CHARS = "-: \t"

logger = get_logger(__name__)


def inline_text(node: SyntaxTreeNode) -> str:
    """Concatenate the visible text below an inline node."""
    if node.type in ("text", "code_inline"):
        return node.content
    if node.type in ("softbreak", "hardbreak"):
        return "\n"
    return "".join(inline_text(child) for child in node.children)


def paragraph_text(node: SyntaxTreeNode) -> str:
    """Raw markdown source of a paragraph, indentation removed."""
    if node.children and node.children[0].type == "inline":
        return node.children[0].content
    return ""


def render_block(node: SyntaxTreeNode, lines: list[str]) -> str:
    """Render one block node back to markdown text."""
    if node.type == "paragraph":
        return paragraph_text(node)

    if node.type == "heading":
        return f"{'#' * int(node.tag[1:])} {paragraph_text(node)}"

    if node.type == "fence":
        return f"{node.markup}{node.info}\n{node.content}{node.markup}"

    if node.type == "code_block":
        return textwrap.indent(node.content.rstrip("\n"), "    ")

    if node.type == "hr":
        return "---"

    if node.map is None:
        return ""
    start, end = node.map
    return textwrap.dedent("\n".join(lines[start:end])).strip("\n")


def clean_url(candidate: str) -> str:
    """Strip escapes and the fragment from a URL candidate and validate it.

    Raises:
        ExtractionError: If the candidate is not an absolute http(s) URL
    """
    url = candidate.replace("\\", "").replace("%5C", "").replace("%5c", "")
    url = url.split("#", 1)[0]

    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ExtractionError(f"could not parse url {candidate!r}: {e}") from e

    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ExtractionError(f"not an absolute http(s) url: {candidate!r}")

    return url


def find_anchor(node: SyntaxTreeNode) -> SyntaxTreeNode | None:
    for child in node.children:
        if child.type == "link":
            return child
        found = find_anchor(child)
        if found is not None:
            return found
    return None


def link_from_paragraph(paragraph: SyntaxTreeNode) -> Link:
    """Extract a link draft from the first paragraph of a list item.

    A markdown anchor wins; otherwise the flat text is scanned for an
    ``http``/``https`` token, with the text before it used as the title
    (or the text after it for ``url (title)`` layouts).

    Raises:
        ExtractionError: If no usable URL is present
    """
    inline = paragraph.children[0] if paragraph.children else None
    anchor = find_anchor(inline) if inline is not None else None

    if anchor is not None:
        href = str(anchor.attrs.get("href", ""))
        title = str(anchor.attrs.get("title", "") or "").strip()
        if not title:
            title = inline_text(anchor).strip()
        return Link(url=clean_url(href), title=title or None)

    text = CHECKBOX_PATTERN.sub("", paragraph_text(paragraph), count=1)

    for token in TOKEN_PATTERN.finditer(text):
        if token.group() not in ("http", "https") or not text.startswith(":", token.end()):
            continue

        url_match = re.match(r"\S+", text[token.start() :])
        candidate = url_match.group() if url_match else ""
        title = text[: token.start()].strip(TRIM_CHARS)
        if not title:
            trailing = text[token.start() + len(candidate) :]
            title = trailing.strip().strip(TRIM_CHARS).strip("()").strip()

        return Link(url=clean_url(candidate), title=title or None)

    raise ExtractionError(f"no http(s) url in {text!r}")


def collect_tag_text(list_node: SyntaxTreeNode) -> list[str]:
    """Gather comma-separated tags from every paragraph of a nested list."""
    tags: list[str] = []
    for item in list_node.children:
        for child in item.children:
            if child.type == "paragraph":
                tags.extend(paragraph_text(child).split(","))
            elif child.type in LIST_TYPES:
                tags.extend(collect_tag_text(child))
    return tags


def apply_metadata(link: Link, metadata: SyntaxTreeNode, lines: list[str]) -> None:
    """Fold one nested metadata list into the draft."""
    for item in metadata.children:
        if not item.children or item.children[0].type != "paragraph":
            continue

        first, *rest = item.children
        text = paragraph_text(first)
        key, _, remainder = text.partition(":")
        key = key.strip()

        if key == "tags":
            tags = remainder.split(",")
            for child in rest:
                if child.type in LIST_TYPES:
                    tags.extend(collect_tag_text(child))
            link.add_tags(tags)

        elif key == "via":
            if remainder.strip():
                link.via = Via.parse(remainder)

        elif key == "notes":
            parts = [link.notes] if link.notes else []
            for child in rest:
                if child.type not in LIST_TYPES:
                    continue
                for note_item in child.children:
                    parts.extend(render_block(block, lines) for block in note_item.children)
            notes = "\n".join(part for part in parts if part)
            link.notes = notes or None

        else:
            logger.debug("Ignoring unknown metadata key", key=key, url=link.url)


class MarkdownLinkExtractor:
    """Link extractor for markdown link dumps."""

    def __init__(self):
        self.parser = MarkdownIt("commonmark")

    def extract(self, source: LinkSource) -> dict[str, Link]:
        lines = source.content.splitlines()
        root = SyntaxTreeNode(self.parser.parse(source.content))
        drafts: dict[str, Link] = {}

        for block in root.children:
            if block.type not in LIST_TYPES:
                continue

            for item in block.children:
                if not item.children or item.children[0].type != "paragraph":
                    logger.warning(
                        "Skipping list item without a leading paragraph",
                        filename=source.filename,
                        line=item.map[0] + 1 if item.map else None,
                    )
                    continue

                first, *rest = item.children
                try:
                    extracted = link_from_paragraph(first)
                except ExtractionError as e:
                    logger.warning(
                        "Skipping list item",
                        filename=source.filename,
                        line=item.map[0] + 1 if item.map else None,
                        error=str(e),
                    )
                    continue

                link = drafts.setdefault(extracted.url, extracted)
                for child in rest:
                    if child.type in LIST_TYPES:
                        apply_metadata(link, child, lines)

        logger.debug("Extracted links", filename=source.filename, count=len(drafts))
        return drafts


def extract_links(source: LinkSource) -> dict[str, Link]:
    """Extract link drafts from a markdown document, keyed by URL."""
    return MarkdownLinkExtractor().extract(source)
