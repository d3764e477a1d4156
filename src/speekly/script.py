"""
Reference script loading.

Turns the free-form text a speaker wants to read into the ordered list of
reference paragraphs the tracker works through. One line of input is one
paragraph. Optionally the text is rendered as Markdown first so that
formatting markup (emphasis, headings, list bullets) is not expected to be
spoken.
"""

import re
from html.parser import HTMLParser

import markdown

# Block-level tags whose boundaries end a line of readable text
BLOCK_TAGS: frozenset[str] = frozenset([
    'p', 'div', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'li', 'blockquote',
    'pre', 'ul', 'ol', 'table', 'tr', 'hr',
])


def normalize_word(word: str) -> str:
    """Normalize a word for matching (lowercase, strip punctuation).

    This is used for comparing recognized words to reference words.
    """
    return re.sub(r'[^\w\s]', '', word.lower()).strip()


def split_words(text: str) -> list[str]:
    """Split text into whitespace-separated words."""
    return [w for w in text.split() if w.strip()]


class _PlainTextHTMLParser(HTMLParser):
    """Collects the visible text of rendered Markdown, one entry per line."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.lines: list[str] = []
        self._current: list[str] = []

    def _break_line(self) -> None:
        text = ' '.join(''.join(self._current).split())
        if text:
            self.lines.append(text)
        self._current = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in BLOCK_TAGS and self._current:
            self._break_line()

    def handle_endtag(self, tag: str) -> None:
        if tag in BLOCK_TAGS:
            self._break_line()

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == 'br':
            self._break_line()

    def handle_data(self, data: str) -> None:
        # Newlines inside a block are layout only; nl2br emits <br> for real breaks
        self._current.append(data.replace('\n', ' '))

    def get_lines(self) -> list[str]:
        """Return the collected lines, flushing any trailing text."""
        if self._current:
            self._break_line()
        return self.lines


def flatten_markdown(text: str) -> str:
    """Render Markdown and return its visible text, one rendered line per line.

    Examples:
        "**Hello** world" -> "Hello world"
        "# Title\\nBody text" -> "Title\\nBody text"
    """
    rendered_html: str = markdown.markdown(
        text,
        extensions=['nl2br', 'sane_lists']
    )
    parser = _PlainTextHTMLParser()
    parser.feed(rendered_html)
    parser.close()
    return '\n'.join(parser.get_lines())


def split_paragraphs(text: str, skip_blank_lines: bool = True) -> list[str]:
    """Split script text into reference paragraphs, one per line.

    Args:
        text: The script text
        skip_blank_lines: Drop lines that contain no words

    Returns:
        List of paragraph strings with surrounding whitespace removed
    """
    paragraphs: list[str] = [line.strip() for line in text.splitlines()]
    if skip_blank_lines:
        paragraphs = [p for p in paragraphs if p]
    return paragraphs


def load_reference_script(
    text: str,
    render_markdown: bool = False,
    skip_blank_lines: bool = True
) -> list[str]:
    """Build the reference paragraph list from user-supplied script text."""
    if render_markdown:
        text = flatten_markdown(text)
    return split_paragraphs(text, skip_blank_lines=skip_blank_lines)
