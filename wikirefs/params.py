# Template parameter parsing: top-level splitting of parameter text,
# keyed/positional parameters, and the role classification used for the
# chained shorthand citation template {{r|...}} and its page-locator
# companion {{rp|...}}.
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import enum
import re
from dataclasses import dataclass
from typing import Optional, TypedDict

from .common import SHORTHAND_TEMPLATE


@dataclass
class TemplateParam:
    """One parameter of a template invocation.  Positional parameters get
    their 1-based position as ``name`` and ``explicit`` False.
    ``value_start`` is the offset of the (trimmed) value within the
    parameter text the parameter was parsed from."""

    name: str
    value: str
    explicit: bool = True
    value_start: int = 0
    # Span of the whole segment (key, "=" and value), without the "|"
    start: int = 0
    end: int = 0


def split_template_params(text: str, sanitized: Optional[str] = None) -> list[str]:
    """Splits template parameter text on ``|`` characters that are not
    inside a nested ``{{...}}`` or ``[[...]]``.  The segments are returned
    untrimmed so that their lengths add up to the length of ``text`` (plus
    the separators).  If ``sanitized`` is given, it must have the same
    length as ``text``; the structure is then read from it, so that pipes
    and braces inside comments or <nowiki> are ignored."""
    assert isinstance(text, str)
    scan = sanitized if sanitized is not None else text
    assert len(scan) == len(text)
    parts: list[str] = []
    depth = 0
    link_depth = 0
    last = 0
    i = 0
    n = len(scan)
    while i < n:
        if scan.startswith("{{", i):
            depth += 1
            i += 2
            continue
        if scan.startswith("}}", i) and depth > 0:
            depth -= 1
            i += 2
            continue
        if scan.startswith("[[", i):
            link_depth += 1
            i += 2
            continue
        if scan.startswith("]]", i) and link_depth > 0:
            link_depth -= 1
            i += 2
            continue
        if scan[i] == "|" and depth == 0 and link_depth == 0:
            parts.append(text[last:i])
            last = i + 1
        i += 1
    parts.append(text[last:])
    return parts


def _top_level_equals(seg: str) -> int:
    """Returns the index of the first ``=`` in ``seg`` that is not inside
    a nested template or link, or -1."""
    depth = 0
    i = 0
    while i < len(seg):
        if seg.startswith("{{", i) or seg.startswith("[[", i):
            depth += 1
            i += 2
            continue
        if (seg.startswith("}}", i) or seg.startswith("]]", i)) and depth > 0:
            depth -= 1
            i += 2
            continue
        if seg[i] == "=" and depth == 0:
            return i
        i += 1
    return -1


def parse_template_params(
    text: str, sanitized: Optional[str] = None
) -> list[TemplateParam]:
    """Parses template parameter text (everything after the first
    top-level ``|`` of the invocation) into a list of parameters.  Each
    segment is split on its first top-level ``=`` into key and value;
    segments without one get a 1-based positional key.  Keys and values
    are trimmed."""
    params: list[TemplateParam] = []
    if not text:
        return params
    scan = sanitized if sanitized is not None else text
    position = 0
    offset = 0
    for seg in split_template_params(text, scan):
        scan_seg = scan[offset : offset + len(seg)]
        eq = _top_level_equals(scan_seg)
        if eq >= 0:
            key = seg[:eq].strip()
            raw_value = seg[eq + 1 :]
            value = raw_value.strip()
            lead = len(raw_value) - len(raw_value.lstrip())
            params.append(
                TemplateParam(
                    key,
                    value,
                    True,
                    offset + eq + 1 + lead,
                    offset,
                    offset + len(seg),
                )
            )
        else:
            position += 1
            value = seg.strip()
            lead = len(seg) - len(seg.lstrip())
            params.append(
                TemplateParam(
                    str(position),
                    value,
                    False,
                    offset + lead,
                    offset,
                    offset + len(seg),
                )
            )
        offset += len(seg) + 1
    return params


def pick_template_param(params: list[TemplateParam], *keys: str) -> Optional[str]:
    """Returns the first non-empty value among explicitly keyed parameters
    whose key matches one of ``keys`` (case-insensitively).  Keys are tried
    in the given order."""
    for key in keys:
        lower = key.lower()
        for p in params:
            if p.explicit and p.name.lower() == lower and p.value:
                return p.value
    return None


class EntryKind(enum.Enum):
    """Role of a parameter of the chained shorthand template."""

    NAME = "name"
    GROUP = "group"
    PAGE = "page"
    PAGES = "pages"
    AT = "at"
    OTHER = "other"


# Key patterns of the chained shorthand template.  The optional digit
# suffix binds the parameter to the name at that position.
NAME_KEY_RE = re.compile(r"(?i)^(?:name|n)(\d*)$", re.ASCII)
GROUP_KEY_RE = re.compile(r"(?i)^(?:grp|group|g)(\d*)$", re.ASCII)
PAGE_KEY_RE = re.compile(r"(?i)^(?:page|p)(\d*)$", re.ASCII)
PAGES_KEY_RE = re.compile(r"(?i)^(?:pages|pp)(\d*)$", re.ASCII)
AT_KEY_RE = re.compile(r"(?i)^(?:at|location|loc)(\d*)$", re.ASCII)
TRAILING_DIGITS_RE = re.compile(r"(\d+)$", re.ASCII)
NUMERIC_KEY_RE = re.compile(r"^[0-9]+$")


@dataclass
class ShorthandEntry:
    """One parameter of a chained shorthand template.  ``key`` is the
    literal key, or None for a positional name.  ``index`` is the 1-based
    position of the name the parameter belongs to."""

    key: Optional[str]
    value: str
    kind: EntryKind
    index: int
    # Span of the value within the parameter text it was parsed from
    value_start: Optional[int] = None
    value_end: Optional[int] = None

    @property
    def is_name(self) -> bool:
        return self.kind == EntryKind.NAME


def parse_shorthand_entries(param_text: str) -> list[ShorthandEntry]:
    """Classifies the parameters of a chained shorthand template.  Names
    are positional, ``name``/``n`` with an optional index, or a plain
    numeric key.  A name without an index takes the next free position.
    ``p``/``pp``/``loc`` and their aliases default to position 1 when not
    suffixed; an unsuffixed group binds to position 1 the first time and
    to the latest name after that.  Parameters with empty values are
    dropped."""
    entries: list[ShorthandEntry] = []
    offset = 0
    if param_text.startswith("|"):
        param_text = param_text[1:]
        offset = 1
    if not param_text:
        return entries
    name_counter = 0
    last_name_index = 0
    has_group_index1 = False
    for part in split_template_params(param_text):
        value_start = offset + len(part) - len(part.lstrip())
        offset += len(part) + 1
        raw = part.strip()
        if not raw:
            continue
        eq = _top_level_equals(raw)
        key = ""
        value = raw
        if eq >= 0:
            key = raw[:eq].strip()
            rest = raw[eq + 1 :]
            value = rest.strip()
            value_start += eq + 1 + len(rest) - len(rest.lstrip())

        kind = EntryKind.OTHER
        idx = max(name_counter, 1)
        m = NAME_KEY_RE.match(key)
        if not key or m or NUMERIC_KEY_RE.match(key):
            kind = EntryKind.NAME
            if m and m.group(1):
                idx = int(m.group(1))
            elif NUMERIC_KEY_RE.match(key):
                idx = int(key)
            else:
                name_counter += 1
                idx = name_counter
            last_name_index = idx
        elif m := GROUP_KEY_RE.match(key):
            kind = EntryKind.GROUP
            if m.group(1):
                idx = int(m.group(1))
            elif has_group_index1 and last_name_index > 1:
                idx = last_name_index
            else:
                idx = 1
            if idx == 1:
                has_group_index1 = True
        elif m := PAGE_KEY_RE.match(key):
            kind = EntryKind.PAGE
            idx = int(m.group(1)) if m.group(1) else 1
        elif m := PAGES_KEY_RE.match(key):
            kind = EntryKind.PAGES
            idx = int(m.group(1)) if m.group(1) else 1
        elif m := AT_KEY_RE.match(key):
            kind = EntryKind.AT
            idx = int(m.group(1)) if m.group(1) else 1
        elif m := TRAILING_DIGITS_RE.search(key):
            idx = int(m.group(1))

        if not value:
            continue
        if kind == EntryKind.NAME and idx > name_counter:
            name_counter = idx
        entries.append(
            ShorthandEntry(
                key or None,
                value,
                kind,
                idx or 1,
                value_start,
                value_start + len(value),
            )
        )
    return entries


def shorthand_names(param_text: str) -> list[str]:
    """Returns the reference names cited by a chained shorthand template."""
    return [e.value for e in parse_shorthand_entries(param_text) if e.is_name]


# Key written for a keyless non-name entry when rebuilding the template
_DEFAULT_KEYS: dict[EntryKind, str] = {
    EntryKind.GROUP: "group",
    EntryKind.PAGE: "p",
    EntryKind.PAGES: "pp",
    EntryKind.AT: "loc",
}

# Text that cannot appear in a parameter value of the shorthand template
# without changing how the template is split
SHORTHAND_UNSAFE_RE = re.compile(r"\||\{\{|\}\}|\[\[|\]\]")


def fits_shorthand(name: str) -> bool:
    """Checks whether a reference name can be cited through the shorthand
    template at all."""
    return SHORTHAND_UNSAFE_RE.search(name) is None


def format_name_param(value: str, index: int, positional: int) -> str:
    """Renders the name at position ``index`` of a shorthand template,
    given that ``positional`` names were written before it without a key.
    The name is written with a numeric key when it contains "=" or when
    positional counting would not give it ``index``."""
    if "=" not in value and positional + 1 == index:
        return value
    return "{}={}".format(index, value)


def _reindexed_key(key: str, kind: EntryKind, index: int) -> str:
    base = TRAILING_DIGITS_RE.sub("", key)
    if not base:
        # A plain numeric key names the position itself
        return str(index)
    if base == key and kind not in _DEFAULT_KEYS:
        return key
    return base + (str(index) if index > 1 else "")


def build_shorthand_string(
    entries: list[ShorthandEntry],
    template_name: str = SHORTHAND_TEMPLATE,
    renumber: bool = False,
) -> Optional[str]:
    """Renders shorthand entries back into a chained shorthand template.
    With ``renumber``, the name positions present in ``entries`` are mapped
    to 1, 2, ... in order of appearance and every suffixed key is
    rewritten accordingly (``lang3`` becomes ``lang2`` when its name moves
    to position 2, and ``lang`` when it moves to position 1).  Returns
    None if there are no names."""
    if not any(e.is_name for e in entries):
        return None
    index_map: dict[int, int] = {}
    if renumber:
        for e in entries:
            if e.is_name and e.index not in index_map:
                index_map[e.index] = len(index_map) + 1
    parts: list[str] = []
    positional = 0
    for e in entries:
        if renumber:
            target = index_map.get(e.index, max(index_map.values()))
        else:
            target = e.index
        if e.key:
            key = _reindexed_key(e.key, e.kind, target) if renumber else e.key
            parts.append("{}={}".format(key, e.value))
        elif e.is_name:
            part = format_name_param(e.value, target, positional)
            if part == e.value:
                positional += 1
            parts.append(part)
        elif e.kind in _DEFAULT_KEYS:
            key = _DEFAULT_KEYS[e.kind]
            if target > 1:
                key += str(target)
            parts.append("{}={}".format(key, e.value))
    return "{{" + template_name + "|" + "|".join(parts) + "}}"


CompanionData = TypedDict(
    "CompanionData",
    {
        "page": Optional[str],
        "pages": Optional[str],
        "pages_key": str,
        "at": Optional[str],
        "group": Optional[str],
        "unsupported": bool,
    },
)


def parse_companion(param_text: str) -> CompanionData:
    """Parses the parameters of a page-locator companion template
    ({{rp|12}}, {{rp|pp=3-4}}, {{rp|at=fig. 2}}).  ``unsupported`` is set
    if any parameter is something else."""
    res: CompanionData = {
        "page": None,
        "pages": None,
        "pages_key": "pp",
        "at": None,
        "group": None,
        "unsupported": False,
    }
    for p in parse_template_params(param_text):
        key = p.name.lower() if p.explicit else ""
        if not key or key in ("p", "page"):
            res["page"] = p.value
        elif key in ("pp", "pages"):
            res["pages"] = p.value
            res["pages_key"] = key
        elif key in ("at", "loc", "location"):
            res["at"] = p.value
        elif key in ("group", "grp", "g"):
            res["group"] = p.value
        else:
            res["unsupported"] = True
    return res
