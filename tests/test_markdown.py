import pytest

from evernote2md import markdown
from evernote2md.errors import RenderError
from evernote2md.markdown import Resource, ResourceKind


class TestResource:
    def test_link(self):
        resource = Resource(file_name="2_1.png", display_name="cat-1.png", kind=ResourceKind.IMAGE, content=b"")
        assert resource.link == "image/2_1.png"
        resource = Resource(file_name="2_2.pdf", display_name="doc.pdf", kind=ResourceKind.FILE, content=b"")
        assert resource.link == "file/2_2.pdf"


class TestConvert:
    def test_paragraph(self):
        assert markdown.convert("<p>World</p>").strip() == "World"

    def test_formatting(self):
        md = markdown.convert("<div>Hello <b>bold</b> and <i>italic</i> and <s>gone</s></div>")
        assert "Hello **bold** and *italic* and ~~gone~~" in md

    def test_list(self):
        md = markdown.convert("<div>Things to buy:</div><ul><li>apple</li><li>banana</li></ul>")
        assert "  * apple\n  * banana\n" in md

    def test_image_and_link(self):
        md = markdown.convert('<div><img src="image/0_0.png" alt="cat.png"/> <a href="file/0_1.pdf">doc.pdf</a></div>')
        assert "![cat.png](image/0_0.png)" in md
        assert "[doc.pdf](file/0_1.pdf)" in md

    def test_code_block(self):
        md = markdown.convert("<div>Code:</div><pre>a = 1\n\nif a:\n    b = 2</pre><div>Done</div>")
        assert "```\na = 1\n\nif a:\n    b = 2\n```" in md
        assert "code-begin" not in md
        assert "Done" in md

    @pytest.mark.parametrize(
        ["enable_highlights", "expected"],
        [
            (True, "Some ==hot== stuff"),
            (False, "Some hot stuff"),
        ],
    )
    def test_highlights(self, enable_highlights, expected):
        md = markdown.convert("<div>Some <mark>hot</mark> stuff</div>", enable_highlights=enable_highlights)
        assert expected in md
        assert "mark" not in md

    def test_escape_special_chars(self):
        assert "a_b*c" in markdown.convert("<div>a_b*c</div>")
        assert r"a\_b\*c" in markdown.convert("<div>a_b*c</div>", escape_special_chars=True)

    def test_render_error(self, monkeypatch):
        def handle(self, data):
            raise AssertionError("unbalanced")

        monkeypatch.setattr(markdown.html2text.HTML2Text, "handle", handle)
        with pytest.raises(RenderError, match="Failed to render HTML to Markdown.*unbalanced"):
            markdown.convert("<table><tr><td>x</table>")
