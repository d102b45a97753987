"""Markdown output records and HTML to Markdown rendering."""

import dataclasses
import datetime
import enum
from typing import Dict, Optional

import html2text
from bs4 import BeautifulSoup

from evernote2md.errors import RenderError


class ResourceKind(str, enum.Enum):
    IMAGE = "image"
    FILE = "file"


@dataclasses.dataclass(frozen=True)
class Resource:
    """Resource extracted from a note.

    :param file_name: physical file name, unique by construction (``{counter}_{index}{ext}``)
    :param display_name: human facing name, disambiguated within one note (``name-1.png``)
    """

    file_name: str
    display_name: str
    kind: ResourceKind
    content: bytes

    @property
    def link(self) -> str:
        """Path of the resource relative to the note file."""
        return f"{self.kind.value}/{self.file_name}"

    def __repr__(self):
        return f"{type(self).__name__}({self.file_name!r}, {self.display_name!r})"


@dataclasses.dataclass
class OutputDocument:
    """Converted note: Markdown content, media keyed by content hash and note dates."""

    content: str = ""
    media: Dict[str, Resource] = dataclasses.field(default_factory=dict)
    created: Optional[datetime.datetime] = None
    updated: Optional[datetime.datetime] = None


_CODE_BEGIN = "code-begin-code-begin-code-begin"
_CODE_END = "code-end-code-end-code-end"


def _prepare(html: str, enable_highlights: bool) -> str:
    soup = BeautifulSoup(html, "html.parser")

    # Mark code blocks, so they can be turned into fenced blocks after html2text.
    for pre in soup.find_all("pre"):
        code = pre.get_text().strip("\n")
        pre.string = f"{_CODE_BEGIN}\n{code}\n{_CODE_END}"

    for mark in soup.find_all("mark"):
        if enable_highlights and mark.get_text().strip():
            mark.insert(0, "==")
            mark.append("==")
        mark.unwrap()

    return str(soup)


def _post_process(text: str) -> str:
    """Strip trailing whitespace generated by html2text and turn marked code blocks into fenced blocks."""
    new_lines = []
    in_code = False
    for line in text.split("\n"):
        line = line.rstrip()
        if line.strip() in (_CODE_BEGIN, _CODE_END):
            in_code = line.strip() == _CODE_BEGIN
            new_lines.append("```")
            continue
        if in_code and line.startswith("    "):
            # html2text indents preformatted text
            line = line[4:]
        new_lines.append(line)
    return "\n".join(new_lines)


def convert(html: str, enable_highlights: bool = False, escape_special_chars: bool = False) -> str:
    """
    Render (normalized) note HTML to Markdown.

    :param html: HTML to render
    :param enable_highlights: render highlighted text (``<mark>``) as ``==text==``
    :param escape_special_chars: backslash-escape all Markdown special characters
    :return: Markdown text
    """
    text_maker = html2text.HTML2Text()
    text_maker.single_line_break = True
    text_maker.inline_links = True
    text_maker.use_automatic_links = False
    text_maker.body_width = 0
    text_maker.emphasis_mark = "*"
    text_maker.escape_snob = escape_special_chars

    try:
        html = _prepare(html, enable_highlights=enable_highlights)
        text = text_maker.handle(html)
    except Exception as e:
        raise RenderError(f"Failed to render HTML to Markdown: {e!r}") from e

    return _post_process(text)
