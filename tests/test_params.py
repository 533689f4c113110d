# Tests for template parameter parsing and the shorthand template
# parameter roles
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import unittest

from wikirefs.params import (
    EntryKind,
    ShorthandEntry,
    build_shorthand_string,
    parse_companion,
    parse_shorthand_entries,
    parse_template_params,
    pick_template_param,
    shorthand_names,
    split_template_params,
)


class ParamTests(unittest.TestCase):
    def entries(self, text):
        return [
            (e.key, e.value, e.kind, e.index)
            for e in parse_shorthand_entries(text)
        ]

    def test_split_nested(self):
        self.assertEqual(
            split_template_params("a|{{b|c}}|[[d|e]]| f "),
            ["a", "{{b|c}}", "[[d|e]]", " f "],
        )

    def test_split_sanitized(self):
        text = "a<!--|-->|b"
        sanitized = "a" + "x" * 8 + "|b"
        self.assertEqual(
            split_template_params(text, sanitized), ["a<!--|-->", "b"]
        )

    def test_split_empty(self):
        self.assertEqual(split_template_params(""), [""])

    def test_parse_positional_and_keyed(self):
        params = parse_template_params("a| k = v |b")
        self.assertEqual(
            [(p.name, p.value, p.explicit) for p in params],
            [("1", "a", False), ("k", "v", True), ("2", "b", False)],
        )

    def test_parse_offsets(self):
        text = "x| k = v"
        p = parse_template_params(text)[1]
        self.assertEqual(p.value_start, 7)
        self.assertEqual(text[p.value_start], "v")
        self.assertEqual((p.start, p.end), (2, 8))

    def test_parse_equals_in_nested_template(self):
        params = parse_template_params("{{x|a=b}}|c=d=e")
        self.assertEqual(params[0].name, "1")
        self.assertEqual(params[0].value, "{{x|a=b}}")
        self.assertEqual((params[1].name, params[1].value), ("c", "d=e"))

    def test_pick_template_param(self):
        params = parse_template_params("Title=|last1=Doe|url=http://x")
        self.assertEqual(pick_template_param(params, "title", "url"), "http://x")
        self.assertEqual(pick_template_param(params, "LAST", "last1"), "Doe")
        self.assertIsNone(pick_template_param(params, "first"))

    def test_entries_positional(self):
        self.assertEqual(
            self.entries("foo|p=2|bar|p2=8-9"),
            [
                (None, "foo", EntryKind.NAME, 1),
                ("p", "2", EntryKind.PAGE, 1),
                (None, "bar", EntryKind.NAME, 2),
                ("p2", "8-9", EntryKind.PAGE, 2),
            ],
        )

    def test_entries_group_binding(self):
        self.assertEqual(
            self.entries("n1=foo|grp=g1|bar|group=g2"),
            [
                ("n1", "foo", EntryKind.NAME, 1),
                ("grp", "g1", EntryKind.GROUP, 1),
                (None, "bar", EntryKind.NAME, 2),
                ("group", "g2", EntryKind.GROUP, 2),
            ],
        )

    def test_entries_unsuffixed_locators_bind_first(self):
        self.assertEqual(
            self.entries("foo|lang2=en|lang3=fr|bar|pp=4-5|baz"),
            [
                (None, "foo", EntryKind.NAME, 1),
                ("lang2", "en", EntryKind.OTHER, 2),
                ("lang3", "fr", EntryKind.OTHER, 3),
                (None, "bar", EntryKind.NAME, 2),
                ("pp", "4-5", EntryKind.PAGES, 1),
                (None, "baz", EntryKind.NAME, 3),
            ],
        )

    def test_entries_aliases(self):
        self.assertEqual(
            self.entries("n1=foo|name2=bar|pages2=10-12|at3=fig1|3=baz|loc=x"),
            [
                ("n1", "foo", EntryKind.NAME, 1),
                ("name2", "bar", EntryKind.NAME, 2),
                ("pages2", "10-12", EntryKind.PAGES, 2),
                ("at3", "fig1", EntryKind.AT, 3),
                ("3", "baz", EntryKind.NAME, 3),
                ("loc", "x", EntryKind.AT, 1),
            ],
        )

    def test_entries_unknown_key_binds_to_latest_name(self):
        self.assertEqual(
            self.entries("a|b|lang=en"),
            [
                (None, "a", EntryKind.NAME, 1),
                (None, "b", EntryKind.NAME, 2),
                ("lang", "en", EntryKind.OTHER, 2),
            ],
        )

    def test_entries_empty_values_dropped(self):
        self.assertEqual(
            self.entries("a||p=|b"),
            [(None, "a", EntryKind.NAME, 1), (None, "b", EntryKind.NAME, 2)],
        )

    def test_shorthand_names(self):
        self.assertEqual(
            shorthand_names("yicai-01|io.gov.mo-01|p=3"),
            ["yicai-01", "io.gov.mo-01"],
        )

    def test_build_keeps_keys(self):
        text = "name=alpha|grp=g1|p=2|pages2=10-12|at3=fig1"
        self.assertEqual(
            build_shorthand_string(parse_shorthand_entries(text)),
            "{{r|" + text + "}}",
        )

    def test_build_renumber(self):
        entries = parse_shorthand_entries("foo|lang2=en|lang3=fr|bar|pp=4-5|baz")
        pending = [entries[3], entries[1], entries[5], entries[2]]
        self.assertEqual(
            build_shorthand_string(pending, renumber=True),
            "{{r|bar|lang=en|baz|lang2=fr}}",
        )

    def test_build_default_keys(self):
        entries = [
            ShorthandEntry(None, "a", EntryKind.NAME, 1),
            ShorthandEntry(None, "b", EntryKind.NAME, 2),
            ShorthandEntry(None, "5", EntryKind.PAGE, 2),
        ]
        self.assertEqual(build_shorthand_string(entries), "{{r|a|b|p2=5}}")

    def test_build_renumber_numeric_key(self):
        entries = parse_shorthand_entries("a|2=b|lang2=x|3=c")
        self.assertEqual(
            build_shorthand_string(entries[1:3], renumber=True),
            "{{r|1=b|lang=x}}",
        )
        self.assertEqual(
            build_shorthand_string([entries[0], entries[3]], renumber=True),
            "{{r|a|2=c}}",
        )

    def test_build_name_with_equals(self):
        entries = [
            ShorthandEntry(None, "x=y", EntryKind.NAME, 1),
            ShorthandEntry(None, "b", EntryKind.NAME, 2),
        ]
        self.assertEqual(build_shorthand_string(entries), "{{r|1=x=y|2=b}}")

    def test_value_spans(self):
        text = "| a | p = 3 |2=b"
        for e in parse_shorthand_entries(text):
            self.assertEqual(text[e.value_start : e.value_end], e.value)

    def test_build_without_names(self):
        entries = [ShorthandEntry("p", "5", EntryKind.PAGE, 1)]
        self.assertIsNone(build_shorthand_string(entries))

    def test_companion_positional(self):
        data = parse_companion("12")
        self.assertEqual(data["page"], "12")
        self.assertFalse(data["unsupported"])

    def test_companion_pages(self):
        data = parse_companion("pages=3-4")
        self.assertEqual(data["pages"], "3-4")
        self.assertEqual(data["pages_key"], "pages")
        self.assertEqual(parse_companion("pp=3")["pages_key"], "pp")

    def test_companion_at_and_group(self):
        data = parse_companion("at=fig. 2|group=n")
        self.assertEqual(data["at"], "fig. 2")
        self.assertEqual(data["group"], "n")

    def test_companion_unsupported(self):
        self.assertTrue(parse_companion("quote=yes")["unsupported"])
