# Conversion between the chained shorthand citation template
# ({{r|a|p=2|b}}) and <ref name="a" /> tags with page-locator companion
# templates ({{rp|2}}).  Both directions are lossless or abstain.
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import dataclasses
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple, Optional

from .common import COMPANION_TEMPLATE, DEFAULT_LIST_TEMPLATES, SHORTHAND_TEMPLATE
from .params import (
    EntryKind,
    ShorthandEntry,
    build_shorthand_string,
    fits_shorthand,
    format_name_param,
    parse_companion,
    parse_shorthand_entries,
)
from .render import render_ref_self, render_ref_tag
from .replacements import Replacement, apply_replacements
from .tokenizer import Token, TokenKind, sanitize, tokenize

if TYPE_CHECKING:
    from .core import TransformContext
    from .references import ShorthandOccurrence

# What may separate the tokens of one collapsible run
GAP_RE = re.compile(r"[ \t]*")

# Entry kinds that a page-locator companion can carry
_LOCATOR_KINDS = (EntryKind.PAGE, EntryKind.PAGES, EntryKind.AT)


class ShorthandTarget(NamedTuple):
    """The reference a name of a shorthand template now refers to:
    its final name (None if it became unnamed) and its body."""

    name: Optional[str]
    content: Optional[str]


def render_companion(bound: list[ShorthandEntry]) -> str:
    """Renders the page-locator companion for the locator entries of one
    name, or "" if there are none."""
    parts: list[str] = []
    for kind in _LOCATOR_KINDS:
        for e in bound:
            if e.kind != kind:
                continue
            if kind == EntryKind.PAGE:
                label = "p"
            elif kind == EntryKind.PAGES:
                if e.key and e.key.lower().startswith("pages"):
                    label = "pages"
                else:
                    label = "pp"
            else:
                label = "at"
            parts.append("{}={}".format(label, e.value))
    if not parts:
        return ""
    return "{{" + COMPANION_TEMPLATE + "|" + "|".join(parts) + "}}"


def expand(
    sh: "ShorthandOccurrence",
    targets: list[ShorthandTarget],
    ctx: "TransformContext",
) -> Optional[str]:
    """Expands a shorthand template into reference tags, each followed by
    a companion holding its page locators.  Names with a parameter that
    a companion cannot hold stay in a shorthand template of their own,
    renumbered from 1; such runs keep their place among the converted
    names.  Returns None (leaving the template as written) if the
    expansion would lose information."""
    names = sh.name_entries
    assert len(names) == len(targets)
    tpl_text = "{{" + sh.template.name + "|" + sh.template.param_text + "}}"
    name_indices = set(e.index for e in names)
    for e in sh.entries:
        if not e.is_name and e.index not in name_indices:
            ctx.warning(
                "parameter {}={} of {} belongs to no name, leaving it "
                "as written".format(e.key, e.value, tpl_text),
                sortid="shorthand-expand-unbound",
            )
            return None

    segments: list[str] = []
    pending: list[ShorthandEntry] = []
    used: set[int] = set()

    def flush() -> None:
        if pending:
            s = build_shorthand_string(
                pending, sh.template.name or SHORTHAND_TEMPLATE, renumber=True
            )
            if s:
                segments.append(s)
            pending.clear()

    for entry, target in zip(names, targets):
        bound: list[ShorthandEntry] = []
        for i, e in enumerate(sh.entries):
            if e.is_name or i in used or e.index != entry.index:
                continue
            used.add(i)
            bound.append(e)
        kinds = [e.kind for e in bound]
        lossy = EntryKind.OTHER in kinds or len(set(kinds)) != len(kinds)
        renamed = dataclasses.replace(entry, value=target.name or entry.value)
        if target.name is None and (lossy or not target.content):
            ctx.warning(
                "{!r} in {} has no name to cite it by, leaving the template "
                "as written".format(entry.value, tpl_text),
                sortid="shorthand-expand-unnamed",
            )
            return None
        if lossy:
            if not fits_shorthand(renamed.value):
                ctx.warning(
                    "{!r} in {} cannot stay in a shorthand template, leaving "
                    "the template as written".format(renamed.value, tpl_text),
                    sortid="shorthand-expand-unfit",
                )
                return None
            pending.append(renamed)
            pending.extend(bound)
            continue
        flush()
        group = None
        for e in bound:
            if e.kind == EntryKind.GROUP:
                group = e.value
        if target.name is None:
            assert target.content
            chunk = render_ref_tag(None, group, target.content)
        else:
            chunk = render_ref_self(target.name, group)
        segments.append(chunk + render_companion(bound))
    flush()
    if not segments:
        return None
    return "".join(segments)


def plan_shorthand(
    sh: "ShorthandOccurrence",
    targets: list[ShorthandTarget],
    use_shorthand: Optional[bool],
    ctx: "TransformContext",
) -> list[Replacement]:
    """Plans the changes to one shorthand template occurrence.  Renamed
    names are replaced in place, keeping the rest of the template as
    written."""
    names = sh.name_entries
    if not names:
        return []
    if use_shorthand is False or any(
        t.name is None or not fits_shorthand(t.name) for t in targets
    ):
        rendered = expand(sh, targets, ctx)
        if rendered is None:
            return []
        return [Replacement(sh.start, sh.end, rendered)]
    changed: list[tuple[ShorthandEntry, str]] = []
    for e, t in zip(names, targets):
        assert t.name is not None
        if t.name != e.value:
            changed.append((e, t.name))
    if not changed:
        return []
    if any(e.key is None and "=" in name for e, name in changed):
        renamed: list[ShorthandEntry] = []
        it = iter(targets)
        for e in sh.entries:
            if e.is_name:
                e = dataclasses.replace(e, value=next(it).name)
            renamed.append(e)
        rebuilt = build_shorthand_string(
            renamed, sh.template.name or SHORTHAND_TEMPLATE
        )
        assert rebuilt is not None
        return [Replacement(sh.start, sh.end, rebuilt)]
    base = sh.template.params_start
    ret: list[Replacement] = []
    for e, name in changed:
        assert e.value_start is not None and e.value_end is not None
        ret.append(Replacement(base + e.value_start, base + e.value_end, name))
    return ret


@dataclass
class ChainItem:
    """One name of a chained shorthand template being built by
    collapse()."""

    name: str
    group: Optional[str] = None
    page: Optional[str] = None
    pages: Optional[str] = None
    at: Optional[str] = None


def build_chain(items: list[ChainItem]) -> str:
    """Renders chain items as one shorthand template.  Parameters of every
    name after the first carry the position of their name as a suffix."""
    params: list[str] = []
    positional = 0
    for i, it in enumerate(items, 1):
        suffix = str(i) if i > 1 else ""
        name = format_name_param(it.name, i, positional)
        if name == it.name:
            positional += 1
        params.append(name)
        if it.group:
            params.append("group{}={}".format(suffix, it.group))
        if it.page:
            params.append("p{}={}".format(suffix, it.page))
        if it.pages:
            params.append("pp{}={}".format(suffix, it.pages))
        if it.at:
            params.append("loc{}={}".format(suffix, it.at))
    return "{{" + SHORTHAND_TEMPLATE + "|" + "|".join(params) + "}}"


@dataclass
class _Unit:
    token: Token
    companion: Optional[Token] = None

    @property
    def start(self) -> int:
        return self.token.start

    @property
    def end(self) -> int:
        if self.companion is not None:
            return self.companion.end
        return self.token.end


def _shorthand_items(param_text: str) -> Optional[list[ChainItem]]:
    entries = parse_shorthand_entries(param_text)
    names = [e for e in entries if e.is_name]
    if not names:
        return None
    indices = [e.index for e in names]
    if len(set(indices)) != len(indices):
        return None
    seen: set[tuple[EntryKind, int]] = set()
    by_index: dict[int, ChainItem] = {}
    items: list[ChainItem] = []
    for e in names:
        item = ChainItem(e.value)
        by_index[e.index] = item
        items.append(item)
    for e in entries:
        if e.is_name:
            continue
        if e.kind == EntryKind.OTHER:
            return None
        if e.index not in by_index or (e.kind, e.index) in seen:
            return None
        seen.add((e.kind, e.index))
        item = by_index[e.index]
        if e.kind == EntryKind.GROUP:
            item.group = e.value
        elif e.kind == EntryKind.PAGE:
            item.page = e.value
        elif e.kind == EntryKind.PAGES:
            item.pages = e.value
        else:
            item.at = e.value
    return items


def _unit_items(unit: _Unit) -> Optional[list[ChainItem]]:
    """Chain items of one unit, or None if the unit cannot be written as
    part of a chained shorthand template without losing something."""
    tok = unit.token
    if tok.kind == TokenKind.SELF_CLOSING_REF:
        if set(tok.attrs) - set(["name", "group"]):
            return None
        if tok.name is None:
            return None
        items = [ChainItem(tok.name, tok.group)]
    else:
        assert tok.template is not None
        found = _shorthand_items(tok.template.param_text)
        if found is None:
            return None
        items = found
    if unit.companion is None:
        return items
    assert unit.companion.template is not None
    data = parse_companion(unit.companion.template.param_text)
    if data["unsupported"]:
        return None
    last = items[-1]
    for attr in ("page", "pages", "at", "group"):
        value = data[attr]  # type: ignore[literal-required]
        if not value:
            continue
        old = getattr(last, attr)
        if old and old != value:
            return None
        setattr(last, attr, value)
    return items


def _units(tokens: list[Token], sanitized: str) -> list[Optional[_Unit]]:
    """Groups each reference-only tag or shorthand template with an
    immediately following companion.  Other tokens become None, which
    breaks runs."""
    units: list[Optional[_Unit]] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok.kind not in (TokenKind.SELF_CLOSING_REF, TokenKind.SHORTHAND):
            units.append(None)
            i += 1
            continue
        if (
            tok.kind == TokenKind.SELF_CLOSING_REF
            and tok.name is not None
            and not fits_shorthand(tok.name)
        ):
            units.append(None)
            i += 1
            continue
        unit = _Unit(tok)
        if i + 1 < len(tokens):
            nxt = tokens[i + 1]
            if nxt.kind == TokenKind.COMPANION and GAP_RE.fullmatch(
                sanitized, tok.end, nxt.start
            ):
                unit.companion = nxt
                i += 1
        units.append(unit)
        i += 1
    return units


def _runs(units: list[Optional[_Unit]], sanitized: str) -> list[list[_Unit]]:
    runs: list[list[_Unit]] = []
    run: list[_Unit] = []
    for unit in units:
        if unit is None:
            if run:
                runs.append(run)
            run = []
            continue
        if run and not GAP_RE.fullmatch(sanitized, run[-1].end, unit.start):
            runs.append(run)
            run = []
        run.append(unit)
    if run:
        runs.append(run)
    return runs


def collapse(
    text: str,
    ctx: "TransformContext",
    list_template_names: Iterable[str] = DEFAULT_LIST_TEMPLATES,
) -> str:
    """Rewrites every run of adjacent reference-only tags and shorthand
    templates (each optionally followed by a companion) as one chained
    shorthand template.  Tokens of a run may be separated only by spaces
    and tabs.  A run is left as written if any of its tokens cannot be
    represented in the chained form, or if it spans lines."""
    assert isinstance(text, str)
    sanitized = sanitize(text)
    tokens = tokenize(text, list_template_names, sanitized)
    replacements: list[Replacement] = []
    for run in _runs(_units(tokens, sanitized), sanitized):
        if len(run) < 2 and run[0].companion is None:
            continue
        start = run[0].start
        end = run[-1].end
        if "\n" in text[start:end]:
            continue
        items: list[ChainItem] = []
        for unit in run:
            found = _unit_items(unit)
            if found is None:
                ctx.warning(
                    "cannot combine {} into a shorthand template without "
                    "losing information, leaving it as written".format(
                        text[unit.start : unit.end]
                    ),
                    sortid="shorthand-collapse-lossy",
                )
                break
            items.extend(found)
        else:
            chain = build_chain(items)
            if chain != text[start:end]:
                replacements.append(Replacement(start, end, chain))
    return apply_replacements(text, replacements)
