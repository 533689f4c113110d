# Tests for the shared string utilities
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import unittest

from wikirefs.common import (
    alpha_index,
    canonical_template_name,
    convert_digits_to_ascii,
    domain_from_url,
    domain_short_from_url,
    extract_url,
    first_year_candidate,
    format_copy,
    group_key,
    is_auto_name,
    natural_sort_key,
    normalize_name_key,
    normalize_whitespace,
    reference_id,
    strip_markup,
    to_latin,
)


class CommonTests(unittest.TestCase):
    def test_canonical_template_name(self):
        self.assertEqual(canonical_template_name(" Cite_web "), "cite web")
        self.assertEqual(canonical_template_name("Reflist"), "reflist")

    def test_reference_id(self):
        self.assertEqual(reference_id("a", None), "a")
        self.assertEqual(reference_id("a", ""), "a")
        self.assertEqual(reference_id("a", "note"), "note::a")

    def test_normalize_whitespace(self):
        self.assertEqual(normalize_whitespace("  a \n\t b  "), "a b")

    def test_natural_sort(self):
        self.assertEqual(
            sorted(["ref10", "Ref2", "ref1", "b"], key=natural_sort_key),
            ["b", "ref1", "Ref2", "ref10"],
        )

    def test_digits(self):
        self.assertEqual(convert_digits_to_ascii("٢٠٢٠年"), "2020年")
        self.assertEqual(convert_digits_to_ascii("abc"), "abc")

    def test_strip_markup(self):
        self.assertEqual(
            strip_markup("[[Foo|bar]] ''baz'' [http://x.com site]<!-- c -->"),
            "bar baz site",
        )
        self.assertEqual(strip_markup("{{lang|ja|日本}} {{other|x}}"), "日本")
        self.assertEqual(strip_markup("a<ref>note</ref> b<br />c"), "a b c")

    def test_year_candidate(self):
        self.assertEqual(first_year_candidate("May 2019, p. 12345"),
                         ("2019", "2019"))
        self.assertEqual(first_year_candidate("٢٠٢٠"), ("٢٠٢٠", "2020"))
        self.assertIsNone(first_year_candidate("12345"))
        self.assertIsNone(first_year_candidate(""))

    def test_extract_url(self):
        self.assertEqual(
            extract_url("{{cite web|url=https://example.org/a?b=1|title=x}}"),
            "https://example.org/a?b=1",
        )
        self.assertIsNone(extract_url("no link"))

    def test_domains(self):
        url = "https://www.nytimes.com/2020/03/05/world/story.html"
        self.assertEqual(domain_from_url(url), "nytimes.com")
        self.assertEqual(domain_short_from_url(url), "nytimes")
        self.assertEqual(domain_short_from_url("http://news.bbc.co.uk/x"), "bbc")
        self.assertEqual(domain_short_from_url("http://localhost/"), "localhost")
        self.assertIsNone(domain_short_from_url("not a url"))

    def test_normalize_name_key(self):
        self.assertEqual(normalize_name_key("Café Näme_2"), "cafe_name_2")
        self.assertEqual(normalize_name_key(""), "")

    def test_to_latin(self):
        self.assertEqual(
            [to_latin(n) for n in (0, 25, 26, 27, 701, 702)],
            ["a", "z", "aa", "ab", "zz", "aaa"],
        )

    def test_group_key(self):
        self.assertEqual(group_key("2020 report"), "#")
        self.assertEqual(group_key("smith"), "S")
        self.assertEqual(group_key("Éclair"), "*")
        self.assertEqual(group_key(None), "*")
        self.assertEqual(group_key("  "), "*")

    def test_alpha_index(self):
        self.assertEqual(alpha_index("#"), 0)
        self.assertEqual(alpha_index("A"), 1)
        self.assertEqual(alpha_index("*"), 27)
        self.assertEqual(alpha_index("?"), 28)

    def test_auto_names(self):
        for name in (":0", ":12", "auto", "Autogenerated1", "ref", "ReferenceA", None):
            self.assertTrue(is_auto_name(name), name)
        for name in ("Smith2020", "referenceA", "nytimes-01"):
            self.assertFalse(is_auto_name(name), name)

    def test_format_copy(self):
        self.assertEqual(format_copy("a", "raw"), "a")
        self.assertEqual(format_copy("a", "r"), "{{r|a}}")
        self.assertEqual(format_copy('x"y', "ref"), '<ref name="x&quot;y" />')
