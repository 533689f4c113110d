# Reference model builder.  Turns the token stream of a page into
# reference records holding every definition and use of each reference.
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import enum
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Optional

from .common import (
    DEFAULT_LIST_TEMPLATES,
    NAMELESS_PREFIX,
    reference_id,
)
from .params import EntryKind, ShorthandEntry, parse_shorthand_entries
from .tokenizer import (
    TemplateMatch,
    Token,
    TokenKind,
    find_ref_tags,
    sanitize,
    tokenize,
)


class UseKind(enum.Enum):
    """How a reference occurrence is written."""

    SELF_CLOSING = "selfClosing"
    FULL = "full"
    SHORTHAND = "shorthandName"


class Location(enum.Enum):
    """Where the body of a reference is placed."""

    INLINE = "inline"
    LIST_DEFINED = "listDefined"


@dataclass(frozen=True)
class RefOccurrence:
    """One occurrence of a reference in the page.  ``name`` and ``group``
    are as written at the occurrence.  ``content`` is the body of a FULL
    occurrence.  SHORTHAND occurrences carry the id of their template
    occurrence and the ordinal of the name among its names; all names of one
    template share the template's span."""

    start: int
    end: int
    kind: UseKind
    name: Optional[str]
    group: Optional[str]
    content: Optional[str] = None
    list_defined: bool = False
    # False when ``group`` was inherited from the list template
    own_group: bool = True
    shorthand_id: Optional[int] = None
    entry_index: int = 0


@dataclass(frozen=True)
class RefRecord:
    """Everything known about one reference identity.  ``index`` is a
    stable arena index; ``canonical`` is the arena index of the record
    this one was merged into by content deduplication (its own index if
    it was not merged).  ``definitions`` are the body-carrying full tags in
    running text, ``list_definitions`` the ones inside an output-list
    template, ``uses`` every occurrence in running text."""

    index: int
    key: str
    name: Optional[str]
    group: Optional[str]
    definitions: tuple[RefOccurrence, ...] = ()
    list_definitions: tuple[RefOccurrence, ...] = ()
    uses: tuple[RefOccurrence, ...] = ()
    canonical: int = -1
    target: Location = Location.INLINE
    # Name before any renaming
    original_name: Optional[str] = None

    @property
    def content(self) -> Optional[str]:
        """First non-empty body in document order, or None."""
        defs = sorted(
            self.definitions + self.list_definitions, key=lambda o: o.start
        )
        for occ in defs:
            if occ.content and occ.content.strip():
                return occ.content
        return None

    @property
    def occurrences(self) -> list[RefOccurrence]:
        return sorted(self.uses + self.list_definitions, key=lambda o: o.start)


@dataclass(frozen=True)
class ShorthandOccurrence:
    """One shorthand template invocation with its classified entries."""

    id: int
    template: TemplateMatch
    entries: tuple[ShorthandEntry, ...]

    @property
    def name_entries(self) -> list[ShorthandEntry]:
        return [e for e in self.entries if e.is_name]

    @property
    def start(self) -> int:
        return self.template.start

    @property
    def end(self) -> int:
        return self.template.end


@dataclass(frozen=True)
class RefModel:
    """Reference records of one page, keyed by arena index, plus the
    templates the transform engine rewrites."""

    text: str
    sanitized: str
    records: dict[int, RefRecord] = field(default_factory=dict)
    list_templates: tuple[TemplateMatch, ...] = ()
    shorthands: tuple[ShorthandOccurrence, ...] = ()

    def __iter__(self) -> Iterator[RefRecord]:
        return iter(self.records.values())

    def find(self, index: int) -> RefRecord:
        """Follows canonical pointers to the surviving record."""
        rec = self.records[index]
        seen = set()
        while rec.canonical != rec.index and rec.canonical not in seen:
            seen.add(rec.index)
            rec = self.records[rec.canonical]
        return rec

    def by_key(self) -> dict[str, RefRecord]:
        return dict((rec.key, rec) for rec in self.records.values())

    def aggregate_uses(self, canonical: RefRecord) -> list[RefOccurrence]:
        """Uses of ``canonical`` and of every record merged into it, in
        document order."""
        uses: list[RefOccurrence] = []
        for rec in self.records.values():
            if self.find(rec.index).index == canonical.index:
                uses.extend(rec.uses)
        uses.sort(key=lambda o: o.start)
        return uses


def shorthand_group(entries: Iterable[ShorthandEntry], index: int) -> Optional[str]:
    """Returns the group bound to the name at ``index``, if any."""
    for e in entries:
        if e.kind == EntryKind.GROUP and e.index == index:
            return e.value
    return None


def list_definitions(
    text: str, sanitized: str, tpl: TemplateMatch
) -> list[RefOccurrence]:
    """Returns the full <ref> tags in the ``refs=`` parameter of an
    output-list template.  A definition without a group attribute takes the
    group of the list template."""
    refs = tpl.param("refs")
    if refs is None or not refs.value:
        return []
    group_param = tpl.param("group")
    list_group = group_param.value if group_param and group_param.value else None
    start = tpl.params_start + refs.value_start
    end = start + len(refs.value)
    ret: list[RefOccurrence] = []
    for t in find_ref_tags(text, sanitized, start, end):
        if t.kind != TokenKind.FULL_REF:
            continue
        ret.append(
            RefOccurrence(
                t.start,
                t.end,
                UseKind.FULL,
                t.name,
                t.group or list_group,
                t.content,
                list_defined=True,
                own_group=t.group is not None,
            )
        )
    return ret


def _token_occurrences(
    tok: Token, shorthand: Optional[ShorthandOccurrence]
) -> list[RefOccurrence]:
    if tok.kind == TokenKind.FULL_REF:
        return [
            RefOccurrence(
                tok.start,
                tok.end,
                UseKind.FULL,
                tok.name,
                tok.group,
                tok.content,
            )
        ]
    if tok.kind == TokenKind.SELF_CLOSING_REF:
        return [
            RefOccurrence(
                tok.start, tok.end, UseKind.SELF_CLOSING, tok.name, tok.group
            )
        ]
    if tok.kind == TokenKind.SHORTHAND and shorthand is not None:
        return [
            RefOccurrence(
                tok.start,
                tok.end,
                UseKind.SHORTHAND,
                e.value,
                shorthand_group(shorthand.entries, e.index),
                shorthand_id=shorthand.id,
                entry_index=i,
            )
            for i, e in enumerate(shorthand.name_entries)
        ]
    return []


def build_ref_model(
    text: str, list_template_names: Iterable[str] = DEFAULT_LIST_TEMPLATES
) -> RefModel:
    """Builds the reference model of a page.  Named occurrences resolve by
    (name, group); every unnamed occurrence gets its own synthetic
    identity, numbered in document order."""
    assert isinstance(text, str)
    list_template_names = tuple(list_template_names)
    sanitized = sanitize(text)
    tokens = tokenize(text, list_template_names, sanitized)

    list_templates: list[TemplateMatch] = []
    shorthands: list[ShorthandOccurrence] = []
    occurrences: list[RefOccurrence] = []
    for tok in tokens:
        assert isinstance(tok, Token)
        if tok.kind == TokenKind.LIST_TEMPLATE:
            assert tok.template is not None
            list_templates.append(tok.template)
            occurrences.extend(list_definitions(text, sanitized, tok.template))
            continue
        sh: Optional[ShorthandOccurrence] = None
        if tok.kind == TokenKind.SHORTHAND:
            assert tok.template is not None
            sh = ShorthandOccurrence(
                len(shorthands),
                tok.template,
                tuple(parse_shorthand_entries(tok.template.param_text)),
            )
            shorthands.append(sh)
        occurrences.extend(_token_occurrences(tok, sh))
    # Python's sort is stable, so names of one shorthand template keep
    # their order
    occurrences.sort(key=lambda o: o.start)

    keys: dict[str, int] = {}
    parts: dict[int, dict[str, Any]] = {}
    nameless = 0
    for occ in occurrences:
        if occ.name:
            key = reference_id(occ.name, occ.group)
        else:
            key = "{}{}".format(NAMELESS_PREFIX, nameless)
            nameless += 1
        idx = keys.get(key)
        if idx is None:
            idx = len(parts)
            keys[key] = idx
            parts[idx] = {
                "key": key,
                "name": occ.name or None,
                "group": occ.group or None,
                "definitions": [],
                "list_definitions": [],
                "uses": [],
            }
        d = parts[idx]
        if occ.list_defined:
            d["list_definitions"].append(occ)
            continue
        if occ.kind == UseKind.FULL:
            d["definitions"].append(occ)
        d["uses"].append(occ)

    records: dict[int, RefRecord] = {}
    for idx, d in parts.items():
        records[idx] = RefRecord(
            idx,
            d["key"],
            d["name"],
            d["group"],
            tuple(d["definitions"]),
            tuple(d["list_definitions"]),
            tuple(d["uses"]),
            canonical=idx,
            original_name=d["name"],
        )
    return RefModel(
        text,
        sanitized,
        records,
        tuple(list_templates),
        tuple(shorthands),
    )


@dataclass
class ReferenceUse:
    """One occurrence of a reference.  ``anchor`` is left for the caller
    to fill in (e.g. with the rendered element that shows the use)."""

    index: int
    anchor: Any = None


@dataclass
class Reference:
    """A reference as seen by callers: identity, name, group, the body of
    its first definition, and its uses in document order."""

    id: str
    name: Optional[str]
    group: Optional[str]
    content_wikitext: str = ""
    uses: list[ReferenceUse] = field(default_factory=list)


def parse_references(
    wikitext: str, list_template_names: Iterable[str] = DEFAULT_LIST_TEMPLATES
) -> list[Reference]:
    """Extracts the references of a page, in order of first occurrence.
    List-defined definitions count as uses."""
    assert isinstance(wikitext, str)
    model = build_ref_model(wikitext, list_template_names)
    ret: list[Reference] = []
    for rec in sorted(model, key=lambda r: r.occurrences[0].start):
        ret.append(
            Reference(
                rec.key,
                rec.name,
                rec.group,
                (rec.content or "").strip(),
                [ReferenceUse(i) for i in range(len(rec.occurrences))],
            )
        )
    return ret


def get_reference_content_map(
    wikitext: str, list_template_names: Optional[Iterable[str]] = None
) -> dict[str, str]:
    """Maps reference identities to their bodies, including list-defined
    ones.  Named references are also reachable by bare name."""
    assert isinstance(wikitext, str)
    if not list_template_names:
        list_template_names = DEFAULT_LIST_TEMPLATES
    model = build_ref_model(wikitext, list_template_names)
    ret: dict[str, str] = {}
    for rec in model:
        content = rec.content
        if not content:
            continue
        if rec.name:
            ret.setdefault(rec.name, content)
        ret[rec.key] = content
    return ret
