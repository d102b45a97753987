"""
Rewrite rules that normalize Evernote flavoured HTML before it is rendered to Markdown.

Rules are applied in a fixed order by :py:class:`RewriteChain`,
each rule receiving the output of the previous one.
"""

import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional

from bs4 import BeautifulSoup, NavigableString, Tag

from evernote2md.markdown import Resource, ResourceKind

_log = logging.getLogger(__name__)


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def parse_style(style: str) -> Dict[str, str]:
    """Parse inline CSS like `font-weight: bold; color: red` into a dict"""
    tokens = {}
    for declaration in style.split(";"):
        key, sep, value = declaration.partition(":")
        if sep:
            tokens[key.strip().lower()] = value.strip().lower()
    return tokens


def _is_only_br(tag: Tag) -> bool:
    children = [c for c in tag.contents if not (isinstance(c, NavigableString) and not c.strip())]
    return len(children) == 1 and isinstance(children[0], Tag) and children[0].name == "br"


class RewriteRule:
    """Base class for HTML rewrite rules."""

    def rewrite(self, html: str) -> str:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class MediaResolver(RewriteRule):
    """
    Resolve `<en-media>` references to the extracted resources, e.g.:

        <en-media hash="..." type="application/pdf" style="cursor:pointer;" />
        <en-media hash="..." type="image/png" />

    Images become `<img>` elements, other resources become links.
    """

    def __init__(self, media: Mapping[str, Resource]):
        self.media = media

    def rewrite(self, html: str) -> str:
        soup = _soup(html)
        for element in soup.find_all("en-media"):
            h = (element.get("hash") or "").lower()
            resource = self.media.get(h)
            if resource is None:
                _log.warning(f"Failed to resolve <en-media> with hash {h!r}")
                element.replace_with(self._unresolved(soup, element, h))
                continue
            if resource.kind == ResourceKind.IMAGE:
                new = soup.new_tag("img", src=resource.link, alt=resource.display_name)
            else:
                new = soup.new_tag("a", href=resource.link)
                new.string = resource.display_name
            element.replace_with(new)
        return str(soup)

    @staticmethod
    def _unresolved(soup: BeautifulSoup, element: Tag, h: str) -> Tag:
        # Keep the hash as link target, so the reference survives rendering.
        if (element.get("type") or "").startswith("image/"):
            return soup.new_tag("img", src=h, alt=h)
        new = soup.new_tag("a", href=h)
        new.string = h
        return new


class Code(RewriteRule):
    """Transform Evernote code blocks to <pre> elements.

    Evernote code blocks look like this (linebreaks added for brevity):

        <div style="box-sizing: border-box; padding: 8px; font-family: Monaco, Menlo, Consolas, &quot;Courier New&quot;, monospace; font-size: 12px; -en-codeblock:true;">
        <div>import this</div>
        <div><br /></div>
        <div>print(my data)</div>
        </div>
    """

    def rewrite(self, html: str) -> str:
        soup = _soup(html)
        for block in soup.find_all(style=re.compile(r"-en-codeblock\s*:\s*true")):
            lines = [nugget.get_text() for nugget in block.find_all("div") if nugget.find("div") is None]
            if not lines:
                lines = [block.get_text()]
            code = "\n".join(lines)

            # Fix the doublequotes
            code = code.replace("“", '"').replace("”", '"')

            pre = soup.new_tag("pre")
            pre.string = code
            block.replace_with(pre)
        return str(soup)


class ExtraDiv(RewriteRule):
    """Collapse decorative `<div>` wrappers."""

    def rewrite(self, html: str) -> str:
        soup = _soup(html)
        for div in soup.find_all("div"):
            if div.parent is None:
                # Already dropped together with a collapsed ancestor.
                continue
            if _is_only_br(div):
                div.replace_with(soup.new_tag("br"))
            elif div.find_parent(["td", "th"]) is not None:
                div.unwrap()
            else:
                children = [c for c in div.contents if not (isinstance(c, NavigableString) and not c.strip())]
                if len(children) == 1 and isinstance(children[0], Tag) and children[0].name == "div":
                    div.unwrap()
        return str(soup)


class TextFormatter(RewriteRule):
    """
    Turn styled spans into semantic inline elements:

        <span style="font-weight: bold;">This text is bold.</span>
        <span style="font-style: italic; font-weight: bold;">This text is bold and italic.</span>
        <span style="--en-highlight:yellow;background-color: #ffef9e;">Highlighted</span>
    """

    def _tags(self, style: Dict[str, str]) -> List[str]:
        tags = []
        if style.get("font-weight") in ("bold", "bolder", "700", "800", "900"):
            tags.append("b")
        if style.get("font-style") == "italic":
            tags.append("i")
        decoration = style.get("text-decoration", "")
        if "line-through" in decoration:
            tags.append("s")
        if "underline" in decoration:
            tags.append("u")
        if "--en-highlight" in style:
            tags.append("mark")
        return tags

    def rewrite(self, html: str) -> str:
        soup = _soup(html)
        for span in soup.find_all("span", style=True):
            if _is_only_br(span):
                span.replace_with(soup.new_tag("br"))
                continue
            tags = self._tags(parse_style(span["style"]))
            if not tags:
                continue
            span.name = tags[0]
            span.attrs = {}
            inner = span
            for name in tags[1:]:
                wrapper = soup.new_tag(name)
                for child in list(inner.contents):
                    wrapper.append(child.extract())
                inner.append(wrapper)
                inner = wrapper
        return str(soup)


class EmptyAnchor(RewriteRule):
    """Drop anchors without text or image (e.g. `<a name="top"></a>`)."""

    def rewrite(self, html: str) -> str:
        soup = _soup(html)
        for a in soup.find_all("a"):
            if not a.get_text().strip() and a.find("img") is None:
                a.decompose()
        return str(soup)


class NormalizeTodo(RewriteRule):
    """Turn `<en-todo checked="true"/>` checkboxes into `[x] ` (or `[ ] `) task markers."""

    def rewrite(self, html: str) -> str:
        soup = _soup(html)
        for todo in soup.find_all("en-todo"):
            checked = (todo.get("checked") or "").lower() == "true"
            todo.insert_before(NavigableString("[x] " if checked else "[ ] "))
            todo.unwrap()
        return str(soup)


def default_rules() -> List[RewriteRule]:
    return [Code(), ExtraDiv(), TextFormatter(), EmptyAnchor(), NormalizeTodo()]


class RewriteChain:
    """Ordered list of rewrite rules.

    Rewriting is best effort: a rule that fails is skipped (its input is passed on unchanged).
    """

    def __init__(self, rules: Iterable[RewriteRule]):
        self.rules = list(rules)

    @classmethod
    def for_media(
        cls, media: Mapping[str, Resource], rules: Optional[Iterable[RewriteRule]] = None
    ) -> "RewriteChain":
        """Chain that resolves media references first, followed by given (or default) rules."""
        # Media must be resolved before structural rewriting.
        return cls([MediaResolver(media), *(default_rules() if rules is None else rules)])

    def rewrite(self, html: str) -> str:
        for rule in self.rules:
            try:
                html = rule.rewrite(html)
            except Exception:
                _log.warning(f"Rewrite rule {rule!r} failed, leaving HTML unchanged", exc_info=True)
        return html

    def __repr__(self):
        return f"{type(self).__name__}({self.rules!r})"
