# Some definitions used by the tokenizer, the reference model builder,
# the transform engine and the metadata extractor
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import re
import unicodedata
import urllib.parse
from typing import NamedTuple, Optional, Union

# Character used for blanking protected spans (comments, <nowiki>, <pre>,
# <syntaxhighlight>) in sanitized text.  This package assumes that it does
# not occur on Wikitext pages.  It is in the Unicode private use area
# U+100000..U+10FFFF and, unlike a space, it is not whitespace, so text
# blanked with it still separates the tags around it.
MAGIC_BLANK: int = 0x0010203D
MAGIC_BLANK_CHAR: str = chr(MAGIC_BLANK)

# Output-list templates whose refs= parameter holds list-defined references
DEFAULT_LIST_TEMPLATES: tuple[str, ...] = ("reflist", "references")

# Chained shorthand citation template ({{r|name|p=1|name2}}) and its
# page-locator companion ({{rp|12}})
SHORTHAND_TEMPLATE: str = "r"
SHORTHAND_TEMPLATES: tuple[str, ...] = (SHORTHAND_TEMPLATE,)
COMPANION_TEMPLATE: str = "rp"
COMPANION_TEMPLATES: tuple[str, ...] = (COMPANION_TEMPLATE,)

# Prefix of the synthetic identity given to each unnamed occurrence
NAMELESS_PREFIX: str = "__nameless_"


def canonical_template_name(name: str) -> str:
    """Canonicalizes a template name by replacing underscores by spaces,
    sequences of whitespace by a single space, and lowercasing it."""
    return re.sub(r"[\s_]+", " ", name).strip().lower()


def reference_id(name: Optional[str], group: Optional[str]) -> str:
    """Returns the identity string of a named reference."""
    assert name
    if group:
        return "{}::{}".format(group, name)
    return name


def escape_attr(value: str) -> str:
    """Escapes double quotes for use inside a double-quoted attribute."""
    return value.replace('"', "&quot;")


def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def natural_sort_key(name: str) -> list[Union[int, str]]:
    """Sort key for case-insensitive, numeric-aware collation
    ("ref2" < "ref10")."""
    # re.split with a capturing group alternates text and digit runs, so
    # ints and strs never end up compared with each other.
    parts: list[Union[int, str]] = []
    for i, part in enumerate(re.split(r"(\d+)", name)):
        if i % 2:
            parts.append(int(part))
        else:
            parts.append(part.casefold())
    return parts


def convert_digits_to_ascii(value: str) -> str:
    """Converts any Unicode decimal digit to its ASCII counterpart."""
    out: list[str] = []
    for ch in value:
        if not ch.isascii():
            d = unicodedata.decimal(ch, None)
            if d is not None:
                out.append(str(d))
                continue
        out.append(ch)
    return "".join(out)


def strip_markup(text: str) -> str:
    """Strips basic wikitext/HTML markup, leaving something resembling
    the rendered plain text."""
    t = text or ""
    t = re.sub(r"(?s)<!--.*?-->", " ", t)
    t = re.sub(r"(?si)<ref[^>]*>.*?</ref>", " ", t)
    t = re.sub(r"<[^>]+>", " ", t)
    # {{lang|ja|text}} keeps its text
    t = re.sub(r"(?i)\{\{\s*lang[-_a-z]*\s*\|[^|}]*\|([^{}]*?)\}\}", r"\1", t)
    t = re.sub(r"\{\{[^{}]*\}\}", " ", t)
    t = re.sub(
        r"\[https?://[^\s\]]+(?:\s+([^\]]+))?\]",
        lambda m: m.group(1) or "",
        t,
    )
    t = re.sub(r"\[\[([^|\]]*\|)?([^\]]+)\]\]", r"\2", t)
    t = re.sub(r"''+", "", t)
    return normalize_whitespace(t)


class YearCandidate(NamedTuple):
    original: str
    ascii: str


def first_year_candidate(value: str) -> Optional[YearCandidate]:
    """Finds the first plausible four-digit year in a string.  The year is
    returned both as written and converted to ASCII digits."""
    if not value:
        return None
    ascii_value = convert_digits_to_ascii(value)
    m = re.search(r"(?:^|\D)(\d{4})(?!\d)", ascii_value, re.ASCII)
    if m is None:
        return None
    # convert_digits_to_ascii() maps one character to one character, so
    # the span is valid in the original string too
    original = value[m.start(1) : m.end(1)]
    return YearCandidate(original, m.group(1))


def extract_url(content: str) -> Optional[str]:
    m = re.search(r"(?i)https?://[^\s|<>\"\]}]+", content)
    return m.group(0) if m else None


def domain_from_url(url: str) -> Optional[str]:
    """Returns the host of ``url`` without a leading "www."."""
    try:
        host = urllib.parse.urlsplit(url).hostname or ""
    except ValueError:
        return None
    host = re.sub(r"^www\.", "", host)
    return host or None


# Second-level labels that, under a two-letter country code, form part of
# the public suffix (news.bbc.co.uk -> bbc)
_SECOND_LEVEL_SUFFIXES: set[str] = set(
    ["co", "com", "net", "org", "gov", "edu", "ac", "or", "ne", "go", "gv"]
)


def domain_short_from_url(url: str) -> Optional[str]:
    """Returns the registrable domain label of ``url`` without its public
    suffix, e.g. "nytimes" for https://www.nytimes.com/..."""
    domain = domain_from_url(url)
    if not domain:
        return None
    labels = domain.split(".")
    if len(labels) == 1:
        return labels[0]
    if (
        len(labels) >= 3
        and len(labels[-1]) == 2
        and labels[-2] in _SECOND_LEVEL_SUFFIXES
    ):
        return labels[-3]
    return labels[-2]


def normalize_name_key(name: str) -> str:
    """Normalizes a reference name to a lowercase ASCII-ish key."""
    if not name:
        return ""
    text = unicodedata.normalize("NFD", convert_digits_to_ascii(name))
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    text = re.sub(r"[\s_]+", "_", text.lower())
    return re.sub(r"[^\w-]+", "", text).strip()


def to_latin(n: int) -> str:
    """Converts a zero-based index to a letter sequence (a, b, ... z, aa,
    ab, ...)."""
    assert n >= 0
    s = ""
    while True:
        s = chr(ord("a") + n % 26) + s
        n = n // 26 - 1
        if n < 0:
            return s


def group_key(name: Optional[str]) -> str:
    """Alphabetical bucket of a reference name: "#" for names starting with
    a digit, an uppercase letter, or "*" for anything else."""
    if not name:
        return "*"
    first = name.strip()[:1]
    if not first:
        return "*"
    if first.isascii() and first.isdigit():
        return "#"
    if first.isascii() and first.isalpha():
        return first.upper()
    return "*"


ALPHABET: list[str] = ["#"] + [chr(c) for c in range(ord("A"), ord("Z") + 1)]
ALPHABET.append("*")


def alpha_index(char: str) -> int:
    """Sort index of a bucket returned by group_key()."""
    try:
        return ALPHABET.index(char)
    except ValueError:
        return len(ALPHABET)


# Names generated by editing tools (VisualEditor ":0", "auto", ...)
AUTO_NAME_RE = re.compile(r"(?i)^(?::\d+|ref|reference|note|auto(?:generated)?\d*)$")
# Citation bot style "ReferenceA", case-sensitive
AUTO_REFERENCE_RE = re.compile(r"^Reference[A-Z]+$")


def is_auto_name(name: Optional[str]) -> bool:
    """Checks whether a reference name looks machine generated."""
    if not name:
        return True
    trimmed = name.strip()
    return bool(AUTO_NAME_RE.match(trimmed) or AUTO_REFERENCE_RE.match(trimmed))


def format_copy(name: str, fmt: str) -> str:
    """Formats a reference name for copying: "raw", "r" or "ref"."""
    if fmt == "r":
        return "{{" + SHORTHAND_TEMPLATE + "|" + name + "}}"
    if fmt == "ref":
        return '<ref name="{}" />'.format(escape_attr(name))
    return name
