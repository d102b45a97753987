import base64
import binascii
import collections
import dataclasses
import datetime
import hashlib
import logging
import mimetypes
import os.path
import re
from typing import Callable, Dict, Iterable, Optional, Tuple

from evernote2md import markdown
from evernote2md.dates import FRONT_MATTER_DATE_FORMAT, TIMEZONE, as_timezone, parse_enex_date
from evernote2md.enex import Attachment, EnexParser, EnexPath, SourceNote
from evernote2md.errors import ConfigurationError, ConversionError, ResourceDecodeError
from evernote2md.front_matter import FrontMatterData, FrontMatterRenderer
from evernote2md.markdown import OutputDocument, Resource, ResourceKind
from evernote2md.rewrite import RewriteChain, RewriteRule, default_rules
from evernote2md.sink import Sink

_log = logging.getLogger(__name__)

# HTML to Markdown rendering: (html, enable_highlights, escape_special_chars) -> markdown
Renderer = Callable[[str, bool, bool], str]


def _extension(mime: str) -> str:
    ext = mimetypes.guess_extension(mime or "", strict=False)
    if not ext:
        m = re.match(r"^\w+/(\w+)", mime or "")
        ext = "." + m.group(1) if m else ""
    return ext


def resource_name(attachment: Attachment) -> Tuple[str, str]:
    """Derive a (name, extension) pair for an attachment."""
    name, ext = os.path.splitext(attachment.file_name or "")
    if not ext:
        ext = _extension(attachment.mime)
    return name or "untitled", ext


@dataclasses.dataclass
class ConversionState:
    """
    State of a single conversion: the document being built and the first error encountered.
    Once an error is set, all further conversion stages are skipped.
    """

    document: OutputDocument = dataclasses.field(default_factory=OutputDocument)
    error: Optional[ConversionError] = None

    def fail(self, error: ConversionError):
        if self.error is None:
            self.error = error

    @property
    def failed(self) -> bool:
        return self.error is not None


class Converter:
    """Convertor for ENEX note to Markdown format"""

    TAG_TOKEN = "{{tag}}"
    DEFAULT_TAG_TEMPLATE = "#{{tag}}"

    def __init__(
        self,
        tag_template: Optional[str] = None,
        front_matter: bool = False,
        front_matter_template: Optional[str] = None,
        enable_highlights: bool = False,
        escape_special_chars: bool = False,
        timezone: str = TIMEZONE.UTC,
        renderer: Optional[Renderer] = None,
        rules: Optional[Iterable[RewriteRule]] = None,
    ):
        """

        :param tag_template: template for a single tag, must contain "{{tag}}" exactly once
        :param front_matter: prepend a front matter block with note metadata
        :param front_matter_template: Jinja2 template for the front matter block
        :param enable_highlights: render highlighted text as `==text==`
        :param escape_special_chars: escape all Markdown special characters
        :param timezone: timezone to format front matter dates in
        :param renderer: HTML to Markdown renderer
        :param rules: rewrite rules to apply after resolving media references
            (default: code blocks, extra divs, text formatting, empty anchors, todos)
        """
        tag_template = tag_template or self.DEFAULT_TAG_TEMPLATE
        if tag_template.count(self.TAG_TOKEN) != 1:
            raise ConfigurationError(
                f"Tag template should contain exactly one {self.TAG_TOKEN} template variable, got {tag_template!r}"
            )
        # Validate timezone early
        as_timezone(datetime.datetime.now(tz=datetime.timezone.utc), timezone=timezone)

        self.tag_template = tag_template
        self.front_matter = front_matter
        self.front_matter_renderer = FrontMatterRenderer(front_matter_template) if front_matter else None
        self.enable_highlights = enable_highlights
        self.escape_special_chars = escape_special_chars
        self.timezone = timezone
        self.renderer = renderer or markdown.convert
        self.rules = list(rules) if rules is not None else default_rules()

    def convert(self, note: SourceNote, counter: int = 0) -> OutputDocument:
        """Convert a note to a Markdown document, raising the first conversion error, if any."""
        state = self.run(note, counter=counter)
        if state.error:
            raise state.error
        return state.document

    def run(self, note: SourceNote, counter: int = 0) -> ConversionState:
        """
        Run all conversion stages for a single note.

        :param note: note to convert
        :param counter: position of the note in a batch, to keep resource file names
            unique across notes written to the same folder
        :return: conversion state: the document and the error that stopped the conversion (if any)
        """
        state = ConversionState()

        self._map_resources(note, state, counter)
        self._normalize_html(note, state)
        self._to_markdown(state)
        self._prepend_tags(note, state)
        self._prepend_title(note, state)
        self._trim_spaces(state)
        self._add_dates(note, state)
        if self.front_matter:
            self._add_front_matter(note, state)

        return state

    def _map_resources(self, note: SourceNote, state: ConversionState, counter: int):
        if state.failed:
            return
        media = state.document.media
        names: Dict[str, int] = collections.Counter()
        for i, attachment in enumerate(note.attachments):
            try:
                data = base64.b64decode(re.sub(r"\s+", "", attachment.data), validate=True)
            except (binascii.Error, ValueError) as e:
                state.fail(ResourceDecodeError(f"Failed to decode attachment {i} ({attachment!r}): {e}", index=i))
                media.clear()
                return

            key = hashlib.md5(data).hexdigest()
            if key in media:
                _log.debug(f"Skipping duplicate attachment {attachment!r} (same content as {media[key]!r})")
                continue

            name, ext = resource_name(attachment)
            # Ensure the display name is unique
            count = names[name + ext]
            names[name + ext] += 1
            if count:
                name = f"{name}-{count}"

            media[key] = Resource(
                file_name=f"{counter}_{i}{ext}",
                display_name=name + ext,
                kind=ResourceKind.IMAGE if attachment.mime.startswith("image/") else ResourceKind.FILE,
                content=data,
            )

    def _normalize_html(self, note: SourceNote, state: ConversionState):
        if state.failed:
            return
        chain = RewriteChain.for_media(state.document.media, rules=self.rules)
        state.document.content = chain.rewrite(note.content)

    def _to_markdown(self, state: ConversionState):
        if state.failed:
            return
        try:
            state.document.content = self.renderer(
                state.document.content, self.enable_highlights, self.escape_special_chars
            )
        except ConversionError as e:
            state.fail(e)

    def tag_list(self, note: SourceNote, template: str, separator: str, wrap: bool = False) -> str:
        if not note.tags:
            return ""
        tags = separator.join(template.replace(self.TAG_TOKEN, tag, 1) for tag in note.tags)
        if wrap:
            tags = f"{tags}\n\n"
        return tags

    def _prepend_tags(self, note: SourceNote, state: ConversionState):
        if state.failed:
            return
        state.document.content = self.tag_list(note, self.tag_template, " ", wrap=True) + state.document.content

    def _prepend_title(self, note: SourceNote, state: ConversionState):
        if state.failed:
            return
        state.document.content = f"# {note.title}\n\n" + state.document.content

    def _trim_spaces(self, state: ConversionState):
        if state.failed:
            return
        content = re.sub(r"\n{3,}", "\n\n", state.document.content)
        state.document.content = content.rstrip("\n") + "\n"

    def _add_dates(self, note: SourceNote, state: ConversionState):
        if state.failed:
            return
        state.document.created = parse_enex_date(note.created)
        state.document.updated = parse_enex_date(note.updated)

    def _format_date(self, d: datetime.datetime) -> str:
        return as_timezone(d, timezone=self.timezone).strftime(FRONT_MATTER_DATE_FORMAT)

    def _add_front_matter(self, note: SourceNote, state: ConversionState):
        if state.failed:
            return
        header = self.front_matter_renderer.render(
            FrontMatterData(
                ctime=self._format_date(state.document.created),
                mtime=self._format_date(state.document.updated),
                title=note.title,
                attributes=note.attributes,
                tag_list=self.tag_list(note, "'{{tag}}'", ", "),
            )
        )
        state.document.content = header + state.document.content


class Exporter:
    """Convert all notes of ENEX files and store them to a sink"""

    def __init__(self, converter: Converter, sink: Sink, parser: Optional[EnexParser] = None):
        self.converter = converter
        self.sink = sink
        self.parser = parser or EnexParser()
        self.counter = 0
        self.stats: Dict[str, int] = collections.Counter()

    def export(self, enex: EnexPath):
        for note in self.parser.extract_notes(enex):
            _log.info(f"Converting {note.title!r}")
            self.export_note(note)

    def export_note(self, note: SourceNote) -> ConversionState:
        state = self.converter.run(note, counter=self.counter)
        self.counter += 1
        if state.failed:
            _log.warning(f"Failed to convert note {note.title!r} from {note.source_enex}: {state.error}")
            self.stats["notes failed"] += 1
        else:
            self.sink.store_note(note=note, document=state.document)
            self.stats["notes exported"] += 1
        return state
