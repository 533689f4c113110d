# Rendering of reference tags, shorthand templates and output-list
# bodies back to WikiText
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import re
from dataclasses import dataclass
from typing import Optional

from .common import (
    SHORTHAND_TEMPLATE,
    escape_attr,
    natural_sort_key,
)
from .params import TemplateParam, fits_shorthand, format_name_param
from .tokenizer import TemplateMatch, find_templates


@dataclass
class ListEntry:
    """A list-defined reference to be written into an output-list
    template."""

    name: Optional[str]
    group: Optional[str]
    content: str


def ref_open_tag(name: Optional[str], group: Optional[str]) -> str:
    attrs: list[str] = []
    if name:
        attrs.append('name="{}"'.format(escape_attr(name)))
    if group:
        attrs.append('group="{}"'.format(escape_attr(group)))
    if not attrs:
        return "<ref>"
    return "<ref {}>".format(" ".join(attrs))


def render_ref_tag(
    name: Optional[str],
    group: Optional[str],
    content: str,
    normalize: bool = False,
) -> str:
    """Renders a body-holding <ref> tag.  The body is cleaned with
    normalize_content_block(), or with normalize_ref_body() if
    ``normalize`` is set."""
    if normalize:
        body = normalize_ref_body(content)
    else:
        body = normalize_content_block(content)
    return ref_open_tag(name, group) + body + "</ref>"


def render_ref_self(
    name: Optional[str], group: Optional[str], prefer_shorthand: bool = False
) -> str:
    """Renders a reference-only use: ``<ref name="x" />`` or, with
    ``prefer_shorthand``, ``{{r|x}}``.  Names that would change how the
    template is split keep the tag form."""
    if not name:
        return "<ref />"
    if prefer_shorthand and fits_shorthand(name) and fits_shorthand(group or ""):
        parts = [format_name_param(name, 1, 0)]
        if group:
            parts.append("group={}".format(group))
        return "{{" + SHORTHAND_TEMPLATE + "|" + "|".join(parts) + "}}"
    return ref_open_tag(name, group)[:-1] + " />"


def normalize_content_block(content: str) -> str:
    """Removes trailing spaces from lines, collapses runs of three or more
    newlines into a blank line, and trims the text."""
    text = content or ""
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


# Citation template parameters that go first, in this order, when a body
# is normalized
CITE_PARAM_PRIORITY: list[str] = [
    "title",
    "url",
    "website",
    "language",
    "dead-url",
    "archive-url",
    "archive-date",
    "access-date",
]

# Other spellings accepted for the prioritized parameters
CITE_PARAM_ALIASES: dict[str, tuple[str, ...]] = {
    "dead-url": ("deadurl",),
}


def _is_cite_template(name: str) -> bool:
    return name.startswith("cite ")


def _reorder_cite_params(params: list[TemplateParam]) -> list[TemplateParam]:
    ordered: list[TemplateParam] = []
    used: set[int] = set()
    for key in CITE_PARAM_PRIORITY:
        accepted = (key,) + CITE_PARAM_ALIASES.get(key, ())
        for i, p in enumerate(params):
            if i in used or not p.explicit:
                continue
            if p.name.lower() in accepted:
                ordered.append(p)
                used.add(i)
                break
    for i, p in enumerate(params):
        if i not in used:
            ordered.append(p)
    return ordered


def normalize_ref_body(content: str) -> str:
    """Cleans a reference body like normalize_content_block() and
    rewrites every top-level citation template in it as
    ``{{Cite web |title=... |url=...}}`` with the most important
    parameters first."""
    text = normalize_content_block(content)
    templates = find_templates(text, _is_cite_template)
    for tpl in reversed(templates):
        if not tpl.params:
            continue
        parts: list[str] = []
        for p in _reorder_cite_params(tpl.params):
            if p.explicit:
                parts.append("{}={}".format(p.name, p.value))
            else:
                parts.append(p.value)
        rendered = "{{" + tpl.name + " |" + " |".join(parts) + "}}"
        text = text[: tpl.start] + rendered + text[tpl.end :]
    return text


def sort_list_entries(entries: list[ListEntry]) -> list[ListEntry]:
    return sorted(entries, key=lambda e: natural_sort_key(e.name or ""))


def render_refs_value(
    entries: list[ListEntry], sort: bool = False, normalize: bool = False
) -> str:
    """Renders the value of a ``refs=`` parameter: one body-holding tag per
    line, with a leading and a trailing newline."""
    if sort:
        entries = sort_list_entries(entries)
    lines = [
        render_ref_tag(e.name, None, e.content, normalize) for e in entries
    ]
    return "\n" + "\n".join(lines) + "\n"


def update_list_template(
    text: str,
    tpl: TemplateMatch,
    entries: list[ListEntry],
    sort: bool = False,
    normalize: bool = False,
) -> str:
    """Returns the output-list template ``tpl`` of ``text`` with its
    ``refs=`` parameter replaced by ``entries``.  Everything else in the
    template is kept as written.  With no entries the parameter is
    removed."""
    refs = tpl.param("refs")
    if not entries:
        if refs is None:
            return text[tpl.start : tpl.end]
        # Drop the parameter together with the "|" before it
        seg_start = tpl.params_start + refs.start - 1
        seg_end = tpl.params_start + refs.end
        return text[tpl.start : seg_start] + text[seg_end : tpl.end]
    value = render_refs_value(entries, sort, normalize)
    if refs is None:
        return text[tpl.start : tpl.end - 2] + "|refs=" + value + "}}"
    seg_start = tpl.params_start + refs.start
    seg_end = tpl.params_start + refs.end
    eq = text.index("=", seg_start, seg_end)
    return text[tpl.start : eq + 1] + value + text[seg_end : tpl.end]


def render_standalone_list(
    entries: list[ListEntry],
    group: Optional[str] = None,
    sort: bool = False,
    normalize: bool = False,
) -> str:
    """Renders a new output-list template to be appended to a page."""
    head = "{{reflist"
    if group:
        head += "|group=" + group
    return "\n" + head + "|refs=" + render_refs_value(entries, sort, normalize) + "}}"
