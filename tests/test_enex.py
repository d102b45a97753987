from pathlib import Path

from evernote2md.enex import Attachment, EnexParser, NoteAttributes

enex_root = Path(__file__).parent / "enex"


class TestEnexParser:
    def test_extract_elements(self):
        parser = EnexParser()
        path = (enex_root / "notebook01.enex").absolute()
        elements = parser.extract_note_elements(path)
        first = next(elements)
        assert first.tag == "note"
        assert first.find("title").text == "The title"
        assert first.find("note-attributes/author").text == "John Doe"
        assert "banana" in first.find("content").text
        assert list(elements) == []

    def test_extract_notes(self):
        parser = EnexParser()
        path = (enex_root / "notebook01.enex").absolute()
        (note,) = list(parser.extract_notes(path))

        assert note.title == "The title"
        assert "Things to buy" in note.content
        assert note.created == "20230709T184204Z"
        assert note.updated == "20230709T184322Z"
        assert note.tags == ["shopping", "food"]
        assert note.attributes == NoteAttributes(
            author="John Doe",
            source_url="https://example.com/groceries",
        )
        assert note.attachments == []
        assert note.source_enex == path

    def test_extract_notes_with_attachments(self):
        parser = EnexParser()
        path = (enex_root / "notebook02.enex").absolute()
        first, second = parser.extract_notes(path)

        assert first.title == "Fa fa fa"
        assert first.attributes.latitude == "50.8503"
        assert first.attributes.longitude == "4.3517"
        assert first.attributes.altitude is None
        assert [(a.file_name, a.mime) for a in first.attachments] == [
            ("rckrll.png", "image/png"),
            ("hello.pdf", "application/pdf"),
            ("rckrll.png", "image/png"),
        ]
        # Payload is kept base64 encoded
        assert isinstance(first.attachments[0], Attachment)
        assert "iVBORw0KGgpy" in first.attachments[0].data

        assert second.title == "Broken attachment"
        assert second.tags == []
        assert second.attributes == NoteAttributes()
        assert second.attachments[0].file_name is None

    def test_stats(self):
        parser = EnexParser(chunk_size=64)
        list(parser.extract_notes(enex_root / "notebook02.enex"))
        assert parser.stats["notes parsed"] == 2
        assert parser.stats["attachments parsed"] == 4
        assert parser.stats["bytes read"] > 1000
