import dataclasses
import json
from typing import Optional

import jinja2

from evernote2md.enex import NoteAttributes
from evernote2md.errors import ConfigurationError

DEFAULT_TEMPLATE = """\
---
date: '{{ ctime }}'
updated_at: '{{ mtime }}'
title: {{ title | trim | quote }}
{%- if tag_list %}
tags: [ {{ tag_list }} ]
{%- endif %}
{%- if attributes.author %}
author: {{ attributes.author | trim | quote }}
{%- endif %}
{%- if attributes.source_url %}
url: {{ attributes.source_url | trim }}
{%- endif %}
{%- if attributes.latitude %}
latitude: {{ attributes.latitude }}
{%- endif %}
{%- if attributes.longitude %}
longitude: {{ attributes.longitude }}
{%- endif %}
{%- if attributes.altitude %}
altitude: {{ attributes.altitude }}
{%- endif %}
{%- if attributes.source %}
source: {{ attributes.source | trim }}
{%- endif %}

---

"""


@dataclasses.dataclass(frozen=True)
class FrontMatterData:
    """Fields available in a front matter template."""

    ctime: str
    mtime: str
    title: str
    attributes: NoteAttributes
    tag_list: str


def trim(text) -> str:
    return str(text).strip() if text is not None else ""


def quote(text) -> str:
    """Quoted and escaped string literal, usable as YAML scalar."""
    return json.dumps(str(text) if text is not None else "", ensure_ascii=False)


class FrontMatterRenderer:
    """Render a front matter block from a (user overridable) Jinja2 template."""

    def __init__(self, template: Optional[str] = None):
        self.source = DEFAULT_TEMPLATE if template is None else template
        env = jinja2.Environment(
            undefined=jinja2.StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        env.filters["trim"] = trim
        env.filters["quote"] = quote
        try:
            self.template = env.from_string(self.source)
        except jinja2.TemplateSyntaxError as e:
            raise ConfigurationError(f"Invalid front matter template (line {e.lineno}): {e.message}") from e
        # Catch references to unknown fields and the like at setup time, not halfway a batch.
        self.render(
            FrontMatterData(
                ctime="2006-01-02 15:04:05 +0000",
                mtime="2006-01-02 15:04:05 +0000",
                title="Title",
                attributes=NoteAttributes(source_url="https://example.com", source="web.clip"),
                tag_list="'tag'",
            )
        )

    def render(self, data: FrontMatterData) -> str:
        try:
            return self.template.render({f.name: getattr(data, f.name) for f in dataclasses.fields(data)})
        except (jinja2.TemplateError, TypeError) as e:
            raise ConfigurationError(f"Failed to render front matter template: {e}") from e
