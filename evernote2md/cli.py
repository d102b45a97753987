"""Command Line Interface (CLI) for evernote2md project."""

import logging
from pathlib import Path
from typing import Iterable, Iterator

import click

from evernote2md.convert import Converter, Exporter
from evernote2md.dates import TIMEZONE
from evernote2md.enex import EnexParser
from evernote2md.errors import ConfigurationError
from evernote2md.sink import FileSystemSink, StdOutSink

_log = logging.getLogger(__name__)


@click.command()
@click.option(
    "--output-root",
    default=FileSystemSink.DEFAULT_OUTPUT_ROOT,
    help="Output root folder (use '-' to dump to stdout)",
    type=click.Path(exists=False, file_okay=False, dir_okay=True, allow_dash=True),
)
@click.option(
    "--note-path-template",
    help="Path template for output notes (fields: title, enex, created).",
    default=FileSystemSink.DEFAULT_NOTE_PATH_TEMPLATE,
)
@click.option(
    "--tag-template",
    help="Template to render a single tag, must contain '{{tag}}' exactly once.",
    default=Converter.DEFAULT_TAG_TEMPLATE,
)
@click.option("--front-matter", is_flag=True, help='Put note metadata in a "frontmatter" block.')
@click.option(
    "--front-matter-template",
    help="Jinja2 template file for the front matter block.",
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
)
@click.option("--highlights", is_flag=True, help="Render highlighted text as '==text=='.")
@click.option("--escape-special-chars", is_flag=True, help="Escape all Markdown special characters.")
@click.option(
    "--allow-spaces-in-filenames",
    is_flag=True,
    default=False,
    help="Allow spaces in output file names.",
)
@click.option(
    "--unsafe-replacer",
    default="_",
    help="Replace character for unsafe characters in file names.",
    type=click.Choice(["", "_", "-"]),
)
@click.option(
    "--root-condition",
    default=FileSystemSink.ROOT_CONDITION.LEAVE_AS_IS,
    help="Condition the root folder should be in: must be empty, or it doesn't matter?",
    type=click.Choice([FileSystemSink.ROOT_CONDITION.LEAVE_AS_IS, FileSystemSink.ROOT_CONDITION.REQUIRE_EMPTY]),
)
@click.option(
    "--on-existing-file",
    help="what to do when a target file already exists: e.g. fail with exception, bump filename with an autoincrement counter until a new file name is found, ...",
    default=FileSystemSink.ON_EXISTING_FILE.BUMP,
    type=click.Choice(
        [
            FileSystemSink.ON_EXISTING_FILE.BUMP,
            FileSystemSink.ON_EXISTING_FILE.FAIL,
            FileSystemSink.ON_EXISTING_FILE.OVERWRITE,
            FileSystemSink.ON_EXISTING_FILE.WARN,
        ]
    ),
)
@click.option(
    "--timezone",
    help="What timezone to work in when formatting dates",
    default=TIMEZONE.UTC,
    type=click.Choice([TIMEZONE.UTC, TIMEZONE.LOCAL]),
)
@click.argument(
    "enex_sources",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, file_okay=True, dir_okay=True, readable=True, path_type=Path),
)
def app(
    output_root,
    note_path_template,
    tag_template,
    front_matter,
    front_matter_template,
    highlights,
    escape_special_chars,
    allow_spaces_in_filenames,
    unsafe_replacer,
    root_condition,
    on_existing_file,
    timezone,
    enex_sources,
):
    logging.basicConfig(level=logging.INFO)

    try:
        converter = Converter(
            tag_template=tag_template,
            front_matter=front_matter,
            front_matter_template=front_matter_template.read_text(encoding="utf-8") if front_matter_template else None,
            enable_highlights=highlights,
            escape_special_chars=escape_special_chars,
            timezone=timezone,
        )
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e

    if output_root == "-":
        sink = StdOutSink()
    else:
        sink = FileSystemSink(
            root=output_root,
            note_path_template=note_path_template,
            allow_spaces_in_filenames=allow_spaces_in_filenames,
            unsafe_replacer=unsafe_replacer,
            root_condition=root_condition,
            on_existing_file=on_existing_file,
            timezone=timezone,
        )
    _log.info(f"Using {sink=}")

    exporter = Exporter(converter=converter, sink=sink, parser=EnexParser())
    for enex_path in collect_enex_paths(enex_sources):
        _log.info(f"Processing input file {enex_path}.")
        try:
            exporter.export(enex=enex_path)
        except ConfigurationError as e:
            raise click.ClickException(str(e)) from e

    _log.info(f"Stats: {exporter.parser.stats=} {exporter.stats=} {sink.stats=}")


def collect_enex_paths(enex_sources: Iterable[Path]) -> Iterator[Path]:
    for enex_source in enex_sources:
        if enex_source.is_file():
            yield enex_source
        elif enex_source.is_dir():
            for p in enex_source.glob("*.enex"):
                if p.is_file():
                    yield p
        else:
            raise ValueError(enex_source)


if __name__ == "__main__":
    app()
