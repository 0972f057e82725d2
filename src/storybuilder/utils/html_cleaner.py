"""HTML cleaning for uploaded file content.

Uploaded requirement documents are often HTML exports (wiki pages, rich-text
editors). They are converted to Markdown before being placed into the prompt
so the model sees text rather than markup.
"""

import re
from bs4 import BeautifulSoup
import html2text

# Opening or closing tag such as <p>, </div>, <table class="x">
HTML_TAG_PATTERN = re.compile(r"</?[a-zA-Z][a-zA-Z0-9]*(\s[^<>]*)?/?>")


def looks_like_html(content: str) -> bool:
    """Heuristic: at least two tags, so "a < b > c" prose is left alone."""
    return len(HTML_TAG_PATTERN.findall(content)) >= 2


def clean_file_content(content: str | None, max_length: int = 10000) -> str:
    """
    Normalize uploaded file text for the {{file_content}} placeholder.

    HTML is converted to Markdown; plain text is only trimmed. The result is
    cut to max_length characters.

    Args:
        content: Raw file text (may be None)
        max_length: Maximum characters kept

    Returns:
        Clean text, empty string when there is nothing usable
    """
    if not content or content.strip() == "":
        return ""

    text = content
    if looks_like_html(text):
        soup = BeautifulSoup(text, "html.parser")
        for tag in soup.find_all(["script", "style"]):
            tag.decompose()
        text = _html_to_markdown(str(soup))

    text = _cleanup_markdown(text)
    return text[:max_length]


def _html_to_markdown(html: str) -> str:
    """Convert HTML to Markdown using html2text."""
    h = html2text.HTML2Text()

    h.ignore_links = False
    h.ignore_images = True
    h.ignore_emphasis = False
    h.body_width = 0  # Don't wrap lines
    h.unicode_snob = True
    h.skip_internal_links = True

    return h.handle(html)


def _cleanup_markdown(markdown: str) -> str:
    """
    Final cleanup of Markdown text.

    - Remove excessive newlines
    - Trim whitespace
    - Normalize list formatting
    """
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    markdown = "\n".join(line.rstrip() for line in markdown.split("\n"))
    markdown = re.sub(r"^(\s*)[-*]\s+", r"\1- ", markdown, flags=re.MULTILINE)
    return markdown.strip()
