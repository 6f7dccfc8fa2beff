"""
Jinja2 rendering of post text for publishing targets.

Templates see ``title``, ``description`` and ``url``; ``description`` is the
item body or an empty string.
"""
from __future__ import annotations

import re
from typing import Dict, Optional

from jinja2 import Environment, TemplateError

from feedcast.errors import PublishError
from feedcast.models import Item

DEFAULT_TEMPLATES: Dict[str, str] = {
    "telegram": "**{{ title }}**\n\n{{ description | truncate(480) }}\n\n🔗 [Read more]({{ url }})",
    "x": "{{ title | truncate(240) }}\n\n{{ url }}",
    "mastodon": "{{ title }}\n\n{{ description | truncate(400) }}\n\n{{ url }}",
    "linkedin": "{{ title }}\n\n{{ description | truncate(700) }}\n\nRead more: {{ url }}",
    "matrix": '<h3>{{ title }}</h3><p>{{ description | truncate(500) }}</p><p><a href="{{ url }}">Read more</a></p>',
    "discord": "**{{ title }}**\n\n{{ description | truncate(400) }}\n\n🔗 {{ url }}",
    "bluesky": "{{ title | truncate(250) }}\n\n{{ url }}",
    "threads": "{{ title }}\n\n{{ description | truncate(450) }}\n\n{{ url }}",
    "openobserve": "Feed: {{ title }}\nDescription: {{ description }}\nURL: {{ url }}",
}
FALLBACK_TEMPLATE = "{{ title }}\n\n{{ description }}\n\n{{ url }}"

_TAG_RE = re.compile(r"<[^>]*>")
_BLOCK_BREAK_RE = re.compile(r"(?i)<br\s*/?>|</?p>")


def truncate(value: Optional[str], length: int = 100) -> str:
    """Cut to ``length`` characters on a word boundary and append an ellipsis."""
    text = value or ""
    if len(text) <= length:
        return text
    cut = text[:length]
    if cut.endswith(" "):
        return cut.rstrip() + "..."
    last_space = cut.rfind(" ")
    if last_space > 0:
        return cut[:last_space] + "..."
    return cut + "..."


def word_limit(value: Optional[str], limit: int = 10) -> str:
    text = value or ""
    words = text.split()
    if len(words) <= limit:
        return text
    return " ".join(words[:limit]) + "..."


def strip_html(value: Optional[str]) -> str:
    text = _BLOCK_BREAK_RE.sub("\n", value or "")
    text = _TAG_RE.sub("", text)
    lines = (line.strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def default_template(kind: str) -> str:
    return DEFAULT_TEMPLATES.get(kind, FALLBACK_TEMPLATE)


class TemplateRenderer:
    def __init__(self) -> None:
        self.env = Environment(autoescape=False, keep_trailing_newline=False)
        self.env.filters["truncate"] = truncate
        self.env.filters["word_limit"] = word_limit
        self.env.filters["strip_html"] = strip_html

    def render(self, template: str, item: Item) -> str:
        try:
            compiled = self.env.from_string(template)
            rendered = compiled.render(title=item.title, description=item.body or "", url=item.url)
        except TemplateError as exc:
            raise PublishError(f"Failed to render template: {exc}") from exc
        return rendered.strip()
