# Tokenizer for the citation markup of WikiText.  Locates <ref> tags,
# shorthand citation templates, page-locator companions and output-list
# templates, ignoring anything inside comments, <nowiki>, <pre> and
# <syntaxhighlight>.
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import enum
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Optional, Union

from .common import (
    COMPANION_TEMPLATES,
    DEFAULT_LIST_TEMPLATES,
    MAGIC_BLANK_CHAR,
    SHORTHAND_TEMPLATES,
    canonical_template_name,
)
from .params import TemplateParam, parse_template_params

# Spans whose contents must never be interpreted as citation markup.  An
# unterminated comment extends to the end of the text, as in MediaWiki.
PROTECTED_RE = re.compile(
    r"(?si)<!--.*?(?:-->|$)"
    r"|<nowiki\s*/\s*>"
    r"|<(nowiki|pre|syntaxhighlight|source)\b[^>]*(?<!/)>.*?</\1\s*>"
)

# Attributes of a <ref> tag.  Unquoted values cannot contain a slash, so
# that <ref name=foo/> is read as self-closing.
_REF_ATTRS = r"""((?:\s+[\w-]+\s*=\s*(?:"[^"]*"|'[^']*'|[^\s/>"']+))*)"""
FULL_REF_RE = re.compile(r"(?si)<ref\b" + _REF_ATTRS + r"\s*>(.*?)</ref\s*>")
SELF_CLOSING_REF_RE = re.compile(r"(?si)<ref\b" + _REF_ATTRS + r"\s*/\s*>")

# Start of a template invocation: the name runs to the first "|" or "}}"
TEMPLATE_START_RE = re.compile(r"\{\{([^{}|\[\]<>]*?)(\||\}\})")

ATTR_RE = re.compile(
    r"""(?si)\b([^"'>/=\0-\037\s]+)"""
    r"""(?:\s*=\s*("[^"]*"|'[^']*'|[^"'<>`\s]*))?\s*"""
)


def _blank(m: re.Match) -> str:
    return re.sub(r"[^\n]", MAGIC_BLANK_CHAR, m.group(0))


def sanitize(text: str) -> str:
    """Returns ``text`` with comments, <nowiki>, <pre>, <syntaxhighlight>
    and <source> blocks blanked out.  Newlines are kept and every other
    character of such a block is replaced by MAGIC_BLANK_CHAR, so offsets
    into the sanitized text are valid offsets into ``text``."""
    assert isinstance(text, str)
    return PROTECTED_RE.sub(_blank, text)


def parse_attrs(attrs: str) -> dict[str, str]:
    """Parses HTML tag attributes.  Attribute names are lowercased;
    surrounding quotes are removed from values."""
    assert isinstance(attrs, str)
    ret: dict[str, str] = {}
    for m in ATTR_RE.finditer(attrs):
        name = m.group(1).lower()
        value = m.group(2) or ""
        if value.startswith("'") or value.startswith('"'):
            value = value[1:-1]
        if name not in ret:
            ret[name] = value.strip()
    return ret


@dataclass
class TemplateMatch:
    """A template invocation found by find_templates().  ``start`` and
    ``end`` delimit the whole invocation including braces; ``name`` is the
    template name as written (trimmed).  ``params_start`` is the offset
    where ``param_text`` begins (just after the first top-level "|"), or
    the offset of the closing braces if there are no parameters."""

    start: int
    end: int
    name: str
    param_text: str
    params_start: int
    params: list[TemplateParam] = field(default_factory=list)

    @property
    def canonical_name(self) -> str:
        return canonical_template_name(self.name)

    def param(self, key: str) -> Optional[TemplateParam]:
        """Returns the last explicitly keyed parameter named ``key``."""
        found: Optional[TemplateParam] = None
        for p in self.params:
            if p.explicit and p.name.lower() == key:
                found = p
        return found


def _template_end(scan: str, start: int) -> int:
    """Returns the offset just past the "}}" that closes the template
    starting at ``start``, or -1 if it is unterminated."""
    depth = 0
    i = start
    n = len(scan)
    while i < n:
        if scan.startswith("{{", i):
            depth += 1
            i += 2
        elif scan.startswith("}}", i):
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return -1


def find_templates(
    text: str,
    names: Union[Iterable[str], Callable[[str], bool]],
    sanitized: Optional[str] = None,
) -> list[TemplateMatch]:
    """Finds invocations of the templates in ``names`` (compared after
    canonicalization) by counting brace depth, so that templates nested
    in the arguments do not end the match early.  Other templates are
    stepped into, so matching templates nested inside them are found.
    An unterminated invocation is skipped.  ``names`` may also be a
    predicate called with the canonical name."""
    assert isinstance(text, str)
    if callable(names):
        is_wanted = names
    else:
        is_wanted = set(canonical_template_name(x) for x in names).__contains__
    scan = sanitized if sanitized is not None else sanitize(text)
    assert len(scan) == len(text)
    ret: list[TemplateMatch] = []
    i = scan.find("{{")
    while i >= 0:
        m = TEMPLATE_START_RE.match(scan, i)
        if m is None:
            i = scan.find("{{", i + 2)
            continue
        raw_name = text[m.start(1) : m.end(1)]
        name = canonical_template_name(
            scan[m.start(1) : m.end(1)].replace(MAGIC_BLANK_CHAR, "")
        )
        if not is_wanted(name):
            i = scan.find("{{", i + 2)
            continue
        end = _template_end(scan, i)
        if end < 0:
            i = scan.find("{{", m.end(1))
            continue
        if m.group(2) == "|":
            params_start = m.end()
            param_text = text[params_start : end - 2]
            params = parse_template_params(
                param_text, scan[params_start : end - 2]
            )
        else:
            params_start = end - 2
            param_text = ""
            params = []
        ret.append(
            TemplateMatch(
                i, end, raw_name.strip(), param_text, params_start, params
            )
        )
        i = scan.find("{{", end)
    return ret


class TokenKind(enum.Enum):
    """Kinds of citation markup tokens."""

    # <ref name="x" />
    SELF_CLOSING_REF = enum.auto()
    # <ref name="x">body</ref>
    FULL_REF = enum.auto()
    # {{r|x|p=1|y}}
    SHORTHAND = enum.auto()
    # {{rp|12}}
    COMPANION = enum.auto()
    # {{reflist|refs=...}}
    LIST_TEMPLATE = enum.auto()


@dataclass
class Token:
    kind: TokenKind
    start: int
    end: int
    attrs: dict[str, str] = field(default_factory=dict)
    # Body of a FULL_REF token and its offset
    content: Optional[str] = None
    content_start: int = 0
    template: Optional[TemplateMatch] = None

    @property
    def name(self) -> Optional[str]:
        return self.attrs.get("name") or None

    @property
    def group(self) -> Optional[str]:
        return self.attrs.get("group") or None


def find_ref_tags(
    text: str, sanitized: str, start: int = 0, end: Optional[int] = None
) -> list[Token]:
    """Finds full and self-closing <ref> tags between ``start`` and
    ``end``.  Self-closing tags inside the body of a full tag are not
    reported.  Tokens are returned in document order."""
    if end is None:
        end = len(text)
    tokens: list[Token] = []
    for m in FULL_REF_RE.finditer(sanitized, start, end):
        tokens.append(
            Token(
                TokenKind.FULL_REF,
                m.start(),
                m.end(),
                parse_attrs(text[m.start(1) : m.end(1)]),
                text[m.start(2) : m.end(2)],
                m.start(2),
            )
        )
    full_spans = [(t.start, t.end) for t in tokens]
    for m in SELF_CLOSING_REF_RE.finditer(sanitized, start, end):
        if any(s <= m.start() < e for s, e in full_spans):
            continue
        tokens.append(
            Token(
                TokenKind.SELF_CLOSING_REF,
                m.start(),
                m.end(),
                parse_attrs(text[m.start(1) : m.end(1)]),
            )
        )
    tokens.sort(key=lambda t: t.start)
    return tokens


def tokenize(
    text: str,
    list_template_names: Iterable[str] = DEFAULT_LIST_TEMPLATES,
    sanitized: Optional[str] = None,
) -> list[Token]:
    """Produces the citation token stream of ``text`` in document order.
    Tags and templates inside an output-list template are not reported as
    separate tokens; the model builder reads them from the list
    template's ``refs=`` parameter.  Templates inside the body of a full
    <ref> tag are part of that tag."""
    assert isinstance(text, str)
    if sanitized is None:
        sanitized = sanitize(text)
    tokens: list[Token] = []
    lists = find_templates(text, list_template_names, sanitized)
    list_spans = [(t.start, t.end) for t in lists]
    for tpl in lists:
        tokens.append(
            Token(TokenKind.LIST_TEMPLATE, tpl.start, tpl.end, template=tpl)
        )

    def in_list(pos: int) -> bool:
        return any(s <= pos < e for s, e in list_spans)

    refs = [t for t in find_ref_tags(text, sanitized) if not in_list(t.start)]
    body_spans = [
        (t.start, t.end) for t in refs if t.kind == TokenKind.FULL_REF
    ]
    tokens.extend(refs)

    shorthand = set(canonical_template_name(x) for x in SHORTHAND_TEMPLATES)
    for tpl in find_templates(
        text, SHORTHAND_TEMPLATES + COMPANION_TEMPLATES, sanitized
    ):
        if in_list(tpl.start):
            continue
        if any(s <= tpl.start < e for s, e in body_spans):
            continue
        if tpl.canonical_name in shorthand:
            kind = TokenKind.SHORTHAND
        else:
            kind = TokenKind.COMPANION
        tokens.append(Token(kind, tpl.start, tpl.end, template=tpl))

    tokens.sort(key=lambda t: t.start)
    return tokens
