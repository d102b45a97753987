import collections
import dataclasses
import logging
import xml.etree.ElementTree
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

_log = logging.getLogger(__name__)

# Type annotation aliasses
EnexPath = Union[str, Path]


@dataclasses.dataclass(frozen=True)
class Attachment:
    """Attachment (resource) of a note, payload still base64 encoded."""

    data: str
    mime: str = ""
    file_name: Optional[str] = None

    def __repr__(self):
        return f"{type(self).__name__}({self.file_name!r}, {self.mime!r})"


@dataclasses.dataclass(frozen=True)
class NoteAttributes:
    source_url: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    altitude: Optional[str] = None
    source: Optional[str] = None
    author: Optional[str] = None


@dataclasses.dataclass
class SourceNote:
    """Note as found in the ENEX file: timestamps are kept in their raw `20180109T173725Z` form."""

    title: str
    content: str
    attachments: List[Attachment] = dataclasses.field(default_factory=list)
    created: str = ""
    updated: str = ""
    tags: List[str] = dataclasses.field(default_factory=list)
    attributes: NoteAttributes = dataclasses.field(default_factory=NoteAttributes)
    source_enex: Optional[Path] = None

    def __repr__(self):
        return f"{type(self).__name__}({self.title!r})"


class EnexParser:
    """Evernote Export (XML) file parser"""

    def __init__(self, chunk_size: int = 1024 * 1024):
        self.chunk_size = chunk_size
        self.stats: Dict[str, int] = collections.Counter()

    def extract_note_elements(self, path: EnexPath) -> Iterator[xml.etree.ElementTree.Element]:
        """Extract notes from given ENEX (XML) file as XML Elements"""
        parser = xml.etree.ElementTree.XMLPullParser(["start", "end"])
        root = None
        bytes_read = 0
        note_count = 0
        _log.info(f"Start parsing {path}")
        with Path(path).open("r", encoding="utf-8") as f:
            try:
                while True:
                    chunk = f.read(self.chunk_size)
                    if not chunk:
                        break
                    bytes_read += len(chunk)
                    self.stats["bytes read"] += len(chunk)
                    parser.feed(chunk)
                    for event, el in parser.read_events():
                        if event == "start" and root is None:
                            root = el
                        if event == "end" and el.tag == "note":
                            note_count += 1
                            yield el
                            # Drop processed notes to keep memory usage flat.
                            root.clear()
            finally:
                _log.info(f"Stop parsing {path}, bytes read: {bytes_read} bytes, notes produced: {note_count}.")

    def _get_text(self, element: xml.etree.ElementTree.Element, path: str, default=None) -> Optional[str]:
        el = element.find(path)
        if el is None or el.text is None:
            return default
        return el.text

    def parse_attachment_element(self, element: xml.etree.ElementTree.Element) -> Attachment:
        """Parse an attachment (resource) XML element, without decoding its payload."""
        self.stats["attachments parsed"] += 1
        return Attachment(
            data=self._get_text(element, "data", default=""),
            mime=self._get_text(element, "mime", default=""),
            file_name=self._get_text(element, "resource-attributes/file-name"),
        )

    def parse_note_element(
        self, element: xml.etree.ElementTree.Element, source_enex: Optional[EnexPath] = None
    ) -> SourceNote:
        """Parse a note XML element."""
        self.stats["notes parsed"] += 1
        return SourceNote(
            title=self._get_text(element, "title", default=""),
            content=self._get_text(element, "content", default=""),
            attachments=[self.parse_attachment_element(e) for e in element.iterfind("resource")],
            created=self._get_text(element, "created", default=""),
            updated=self._get_text(element, "updated", default=""),
            tags=[e.text for e in element.iterfind("tag") if e.text],
            attributes=NoteAttributes(
                source_url=self._get_text(element, "note-attributes/source-url"),
                latitude=self._get_text(element, "note-attributes/latitude"),
                longitude=self._get_text(element, "note-attributes/longitude"),
                altitude=self._get_text(element, "note-attributes/altitude"),
                source=self._get_text(element, "note-attributes/source"),
                author=self._get_text(element, "note-attributes/author"),
            ),
            source_enex=Path(source_enex) if source_enex else None,
        )

    def extract_notes(self, enex_path: EnexPath) -> Iterator[SourceNote]:
        """Extract all notes from given ENEX file."""
        for element in self.extract_note_elements(enex_path):
            yield self.parse_note_element(element, source_enex=enex_path)
