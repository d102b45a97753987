import collections
import datetime
import logging
import re
from pathlib import Path
from typing import Dict, Optional, Set, Union

from evernote2md.dates import TIMEZONE, as_timezone
from evernote2md.enex import SourceNote
from evernote2md.markdown import OutputDocument

_log = logging.getLogger(__name__)


class Sink:
    """Target to write converted notes to"""

    # Whether the sink stores the resources (images, attachments) of a note
    handle_attachments = True

    def __init__(self):
        self.stats: Dict[str, int] = collections.Counter()

    def store_note(self, note: SourceNote, document: OutputDocument):
        raise NotImplementedError


class StdOutSink(Sink):
    """Dump to stdout"""

    handle_attachments = False

    def store_note(self, note: SourceNote, document: OutputDocument):
        print("--- New Note ---")
        print(document.content, end="")
        print("--- End Note ---")
        self.stats["notes written"] += 1


class FileSystemSink(Sink):
    """
    Write Markdown files.

    Resources are written next to the note, in a subfolder per resource kind
    (e.g. `image/0_1.png`), which is what the Markdown links refer to.
    """

    DEFAULT_OUTPUT_ROOT = "output"
    DEFAULT_NOTE_PATH_TEMPLATE = "{title}.md"

    class ROOT_CONDITION:
        LEAVE_AS_IS = "leave-as-is"
        REQUIRE_EMPTY = "require-empty"

    class ON_EXISTING_FILE:
        BUMP = "bump"
        FAIL = "fail"
        OVERWRITE = "overwrite"
        WARN = "warn"

    def __init__(
        self,
        root: Optional[Union[str, Path]] = None,
        note_path_template: Optional[str] = None,
        allow_spaces_in_filenames: bool = False,
        unsafe_replacer: str = "_",
        max_filename_length: int = 128,
        root_condition: str = ROOT_CONDITION.LEAVE_AS_IS,
        on_existing_file: str = ON_EXISTING_FILE.BUMP,
        timezone: str = TIMEZONE.UTC,
        handle_attachments: Optional[bool] = None,
    ):
        """

        :param root: root folder for note and attachment output
        :param note_path_template: template for path of target Markdown files,
            supporting fields `title`, `enex` and `created`
        :param allow_spaces_in_filenames: allow spaces when deriving file name from note title
        :param unsafe_replacer: replacement character for unsafe strings when deriving file name from note title
        :param max_filename_length: maximum length of note title based file name part
        :param root_condition: condition the root folder should be in: e.g. empty if it exists
        :param on_existing_file: what to do when a target file already exists: e.g. fail with exception,
            bump filename with an autoincrement counter until a new file name is found, ...
        :param timezone: timezone to use for dates in the note path template
        :param handle_attachments: write note resources (default: class level setting)
        """
        super().__init__()
        self.root = Path(root or self.DEFAULT_OUTPUT_ROOT)
        self.note_path_template = note_path_template or self.DEFAULT_NOTE_PATH_TEMPLATE
        _log.info(f"Using note_path_template={self.note_path_template!r}")
        self.allow_spaces_in_filenames = allow_spaces_in_filenames
        self.unsafe_regex = re.compile("[^0-9a-zA-Z _-]+" if self.allow_spaces_in_filenames else "[^0-9a-zA-Z_-]+")
        self.unsafe_replacer = unsafe_replacer
        self.max_filename_length = max_filename_length

        self.root_condition = root_condition
        self._check_root_condition()
        self.written_files: Set[Path] = set()
        self.on_existing_file = on_existing_file

        self.timezone = timezone
        if handle_attachments is not None:
            self.handle_attachments = handle_attachments

    def _check_root_condition(self):
        if self.root.exists():
            assert self.root.is_dir(), f"Must be a folder: {self.root}"
            item_count = sum(1 for _ in self.root.iterdir())
            if self.root_condition == self.ROOT_CONDITION.LEAVE_AS_IS:
                pass
            elif self.root_condition == self.ROOT_CONDITION.REQUIRE_EMPTY:
                assert item_count == 0, f"Must be an empty folder but found {item_count} items: {self.root}"
            else:
                raise ValueError(self.root_condition)

    def _safe_name(self, text: str) -> str:
        """Strip unsafe characters from a string to produce a filename-safe string"""
        safe = self.unsafe_regex.sub(self.unsafe_replacer, text)
        safe = safe.strip(self.unsafe_replacer)
        return safe[: self.max_filename_length] or "untitled"

    def _build_path(self, note: SourceNote, document: OutputDocument) -> Path:
        created = document.created or datetime.datetime.now(tz=datetime.timezone.utc)
        path = self.root / self.note_path_template.format(
            enex=self._safe_name(note.source_enex.stem) if note.source_enex else "enex",
            created=as_timezone(created, timezone=self.timezone),
            title=self._safe_name(note.title),
        )
        return self._resolve_existing(path)

    def _resolve_existing(self, path: Path) -> Path:
        """Apply the existing file policy to a target path."""
        path = self._bump_while(path, condition=lambda p: p in self.written_files)

        if path.exists() and path.is_file():
            if self.on_existing_file == self.ON_EXISTING_FILE.BUMP:
                path = self._bump_while(path, condition=lambda p: p.exists())
            elif self.on_existing_file == self.ON_EXISTING_FILE.FAIL:
                raise FileExistsError(f"Already exists: {path}")
            elif self.on_existing_file == self.ON_EXISTING_FILE.OVERWRITE:
                pass
            elif self.on_existing_file == self.ON_EXISTING_FILE.WARN:
                _log.warning(f"Overwriting existing file {path}")
            else:
                raise ValueError(self.on_existing_file)

        return path

    def _bump_while(self, path: Path, condition) -> Path:
        """Bump a trailing counter in path while certain condition is true."""
        base_path = path
        counter = 1
        while condition(path):
            path = base_path.with_name(f"{base_path.stem}_{counter}{base_path.suffix}")
            counter += 1
        return path

    def store_note(self, note: SourceNote, document: OutputDocument):
        path = self._build_path(note=note, document=document)
        self.written_files.add(path)
        content = document.content

        resources = []
        if self.handle_attachments:
            for resource in document.media.values():
                resource_path = self._resolve_existing(path.parent / resource.link)
                link = resource_path.relative_to(path.parent).as_posix()
                if link != resource.link:
                    _log.info(f"Relinking resource {resource} of note {note} to {link}")
                    content = content.replace(f"]({resource.link})", f"]({link})")
                self.written_files.add(resource_path)
                resources.append((resource, resource_path))

        _log.info(f"Writing converted note {note} to {path}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        self.stats["notes written"] += 1

        for resource, resource_path in resources:
            _log.info(f"Writing resource {resource} of note {note} to {resource_path}")
            resource_path.parent.mkdir(parents=True, exist_ok=True)
            resource_path.write_bytes(resource.content)
            self.stats["attachments written"] += 1
