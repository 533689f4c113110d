# Extraction of naming metadata (author, title, site, date, ...) from the
# body of a reference, for tools that suggest reference names
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import re
from dataclasses import dataclass
from typing import Optional, Union

import dateparser

from .common import (
    convert_digits_to_ascii,
    domain_from_url,
    domain_short_from_url,
    extract_url,
    first_year_candidate,
    strip_markup,
)
from .params import TemplateParam, pick_template_param
from .references import Reference
from .tokenizer import find_templates

# Number of words of the plain text kept in RefMetadata.phrase
PHRASE_WORDS = 6

# Interlanguage prefix of a title ("fr: Le titre")
LANGUAGE_PREFIX_RE = re.compile(r"^[a-zA-Z-]{2,}:\s*")

# Year, optionally followed by month and day, in a date dateparser could
# not make sense of
FALLBACK_DATE_RE = re.compile(r"(\d{4})(?:\D?(\d{1,2})(?:\D?(\d{1,2}))?)?", re.ASCII)

# Only complete dates are taken from dateparser; it would fill in missing
# parts from the current date
DATEPARSER_SETTINGS = {
    "REQUIRE_PARTS": ["day", "month", "year"],
}


@dataclass
class RefMetadata:
    last: Optional[str] = None
    first: Optional[str] = None
    author: Optional[str] = None
    title: Optional[str] = None
    work: Optional[str] = None
    publisher: Optional[str] = None
    domain: Optional[str] = None
    domain_short: Optional[str] = None
    phrase: Optional[str] = None
    # Year as written, and converted to ASCII digits if it was not ASCII
    year: Optional[str] = None
    year_ascii: Optional[str] = None
    # Year found anywhere in the body, when no year or date is given
    text_year: Optional[str] = None
    text_year_ascii: Optional[str] = None
    # e.g. "20200305" and "2020-03-05"; "202003" / "2020" when partial
    date_ymd: Optional[str] = None
    date_display: Optional[str] = None


def parse_date(value: str) -> tuple[Optional[str], Optional[str]]:
    """Returns the compact (YYYYMMDD) and display (YYYY-MM-DD) forms of a
    date.  Partial dates give partial forms."""
    dt = dateparser.parse(value, settings=DATEPARSER_SETTINGS)
    if dt is not None:
        return dt.strftime("%Y%m%d"), dt.strftime("%Y-%m-%d")
    m = FALLBACK_DATE_RE.search(value)
    if m is None:
        return None, None
    y, mon, day = m.groups()
    if mon and day:
        mon = mon.zfill(2)
        day = day.zfill(2)
        return y + mon + day, "{}-{}-{}".format(y, mon, day)
    if mon:
        mon = mon.zfill(2)
        return y + mon, "{}-{}".format(y, mon)
    return y, y


def _first_template(content: str) -> tuple[Optional[str], list[TemplateParam]]:
    templates = find_templates(content, lambda name: bool(name))
    if not templates:
        return None, []
    tpl = templates[0]
    return tpl.canonical_name, tpl.params


def extract_metadata(
    ref_or_content: Union[Reference, str], content: Optional[str] = None
) -> RefMetadata:
    """Extracts naming metadata from a reference body.  The first template
    in the body is read as a citation template.  ``content``, if given,
    overrides the body of ``ref_or_content``."""
    if content is None:
        if isinstance(ref_or_content, Reference):
            content = ref_or_content.content_wikitext
        else:
            content = ref_or_content
    assert isinstance(content, str)
    template_name, params = _first_template(content)
    meta = RefMetadata()

    def pick(*keys: str) -> Optional[str]:
        return pick_template_param(params, *keys)

    def clean(value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        return strip_markup(value) or None

    meta.last = pick("last", "last1", "surname", "author1")
    meta.first = pick("first", "first1", "given")
    meta.author = pick("author", "authors")
    title = pick("title", "script-title", "chapter", "contribution")
    if title:
        meta.title = clean(LANGUAGE_PREFIX_RE.sub("", title))
    meta.work = clean(pick("work", "journal", "newspaper", "website", "periodical"))
    meta.publisher = clean(pick("publisher", "institution"))

    url = pick("url", "archive-url") or extract_url(content)
    if url:
        meta.domain = domain_from_url(url)
        meta.domain_short = domain_short_from_url(url)

    raw_date = pick("date")
    if raw_date:
        date = convert_digits_to_ascii(strip_markup(raw_date))
        if date:
            meta.date_ymd, meta.date_display = parse_date(date)

    year = first_year_candidate(pick("year", "date") or "")
    if year is not None:
        meta.year = year.original
        if year.ascii != year.original:
            meta.year_ascii = year.ascii
    else:
        year = first_year_candidate(content)
        if year is not None:
            meta.text_year = year.original
            if year.ascii != year.original:
                meta.text_year_ascii = year.ascii

    if not meta.last and meta.author:
        author = strip_markup(meta.author)
        if author:
            meta.last = re.split(r"(?i)[,;]| and ", author)[0].strip() or None

    phrase = strip_markup(content)
    if phrase:
        meta.phrase = " ".join(phrase.split()[:PHRASE_WORDS])

    if template_name == "cite tweet":
        user = clean(pick("user"))
        if user:
            meta.author = meta.author or user
            meta.last = meta.last or user
        meta.work = meta.work or "Twitter"
        meta.publisher = meta.publisher or "Twitter"
        meta.domain = meta.domain or "twitter.com"
        meta.domain_short = meta.domain_short or "twitter"
    elif template_name == "cite arxiv":
        meta.work = meta.work or "arXiv"
        meta.publisher = meta.publisher or "arXiv"
        meta.domain = meta.domain or "arxiv.com"
        meta.domain_short = meta.domain_short or "arxiv"
    return meta
