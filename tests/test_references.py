# Tests for extracting references from WikiText
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import unittest

from wikirefs import get_reference_content_map, parse_references
from wikirefs.references import Location, UseKind, build_ref_model


class ReferenceTests(unittest.TestCase):
    def names(self, text):
        return [r.name for r in parse_references(text)]

    def test_empty(self):
        self.assertEqual(parse_references(""), [])
        self.assertEqual(parse_references("Just some plain text."), [])

    def test_named_ref(self):
        refs = parse_references('<ref name="foo">Some citation content</ref>')
        self.assertEqual(len(refs), 1)
        self.assertEqual(refs[0].name, "foo")
        self.assertEqual(refs[0].id, "foo")
        self.assertEqual(refs[0].content_wikitext, "Some citation content")
        self.assertIsNone(refs[0].group)

    def test_quoting_styles(self):
        self.assertEqual(self.names("<ref name='single'>C</ref>"), ["single"])
        self.assertEqual(self.names("<ref name=unquoted>C</ref>"), ["unquoted"])
        self.assertEqual(self.names('<ref name = "spaced" >C</ref>'), ["spaced"])
        self.assertEqual(
            self.names('<ref name="O\'Brien_2020">C</ref>'), ["O'Brien_2020"]
        )

    def test_group(self):
        refs = parse_references('<ref name="foo" group="notes">A note</ref>')
        self.assertEqual(refs[0].group, "notes")
        self.assertEqual(refs[0].id, "notes::foo")

    def test_self_closing(self):
        for text in ('<ref name="foo" />', '<ref name="foo"/>', "<ref name=foo/>"):
            refs = parse_references(text)
            self.assertEqual(len(refs), 1)
            self.assertEqual(refs[0].name, "foo")
            self.assertEqual(refs[0].content_wikitext, "")

    def test_slashes_in_names(self):
        refs = parse_references('<ref name="a/b/c/d">Nested path ref</ref>')
        self.assertEqual(refs[0].name, "a/b/c/d")
        self.assertEqual(refs[0].content_wikitext, "Nested path ref")
        self.assertEqual(self.names('<ref name="Category:Foo/Bar" />'),
                         ["Category:Foo/Bar"])

    def test_multiple_uses(self):
        text = """
            <ref name="source1">First source content</ref>
            Some text here.
            <ref name="source1" />
            More text.
            <ref name="source1" />
        """
        refs = parse_references(text)
        self.assertEqual(len(refs), 1)
        self.assertEqual(len(refs[0].uses), 3)
        self.assertEqual(refs[0].content_wikitext, "First source content")
        self.assertIsNone(refs[0].uses[0].anchor)

    def test_first_definition_wins(self):
        refs = parse_references('<ref name="a">One</ref><ref name="a">Two</ref>')
        self.assertEqual(refs[0].content_wikitext, "One")

    def test_empty_first_definition(self):
        refs = parse_references('<ref name="a"> </ref><ref name="a">Two</ref>')
        self.assertEqual(refs[0].content_wikitext, "Two")

    def test_shorthand(self):
        self.assertEqual(self.names("{{r|Smith2020}}"), ["Smith2020"])
        self.assertEqual(self.names("{{r|name=Jones2019}}"), ["Jones2019"])
        self.assertEqual(
            self.names("Text{{r|ref1}}more{{R|ref2}}end"), ["ref1", "ref2"]
        )

    def test_chained_shorthand(self):
        self.assertEqual(
            self.names("{{r|bilibili-05|sohu-02|dualshockers-01}}"),
            ["bilibili-05", "sohu-02", "dualshockers-01"],
        )

    def test_shorthand_group(self):
        refs = parse_references("{{r|foo|grp=baz}}")
        self.assertEqual(refs[0].id, "baz::foo")
        self.assertEqual(refs[0].group, "baz")

    def test_unnamed(self):
        refs = parse_references("<ref>Anonymous citation</ref>")
        self.assertIsNone(refs[0].name)
        self.assertEqual(refs[0].id, "__nameless_0")
        self.assertEqual(refs[0].content_wikitext, "Anonymous citation")

    def test_unnamed_never_merged(self):
        refs = parse_references("<ref>Same</ref> <ref>Same</ref>")
        self.assertEqual(len(refs), 2)
        self.assertNotEqual(refs[0].id, refs[1].id)

    def test_ignored_in_comments_and_nowiki(self):
        text = """
            <ref name="visible">Real ref</ref>
            <!-- <ref name="hidden">Commented out</ref> -->
            <nowiki><ref name="fake">Not a ref</ref></nowiki>
            <pre><ref name="example">Code example</ref></pre>
        """
        self.assertEqual(self.names(text), ["visible"])

    def test_mixed_formats(self):
        text = """
            According to sources<ref name="Smith2020">Smith, J. (2020)</ref>,
            this is true.<ref name="Smith2020" /> See also<ref>Anonymous</ref>
            and {{r|Jones2019}}.
        """
        refs = parse_references(text)
        self.assertEqual(
            [r.name for r in refs], ["Smith2020", None, "Jones2019"]
        )
        self.assertEqual(refs[0].content_wikitext, "Smith, J. (2020)")
        self.assertEqual(len(refs[0].uses), 2)

    def test_complex_content(self):
        text = """<ref name="multiline">
            {{cite book
            |author=John Doe
            |title=My Book
            }}
        </ref>"""
        refs = parse_references(text)
        self.assertTrue(refs[0].content_wikitext.startswith("{{cite book"))
        self.assertIn("John Doe", refs[0].content_wikitext)

    def test_list_defined(self):
        text = """Text<ref name="a" />

{{reflist|refs=
<ref name="a">Alpha</ref>
<ref name="b">Beta</ref>
}}"""
        refs = parse_references(text)
        self.assertEqual([r.name for r in refs], ["a", "b"])
        self.assertEqual(refs[0].content_wikitext, "Alpha")
        self.assertEqual(len(refs[0].uses), 2)
        self.assertEqual(len(refs[1].uses), 1)

    def test_list_group_inherited(self):
        text = '{{reflist|group=n|refs=<ref name="a">A</ref>}}<ref name="a" group="n" />'
        refs = parse_references(text)
        self.assertEqual(len(refs), 1)
        self.assertEqual(refs[0].id, "n::a")
        self.assertEqual(len(refs[0].uses), 2)

    def test_model_records(self):
        text = (
            '<ref name="a">A</ref>{{r|a}}<ref name="a" />'
            '{{references|refs=<ref name="b">B</ref>}}'
        )
        model = build_ref_model(text)
        a, b = list(model)
        self.assertEqual(
            [u.kind for u in a.uses],
            [UseKind.FULL, UseKind.SHORTHAND, UseKind.SELF_CLOSING],
        )
        self.assertEqual(len(a.definitions), 1)
        self.assertEqual(b.uses, ())
        self.assertEqual(len(b.list_definitions), 1)
        self.assertEqual(b.target, Location.INLINE)
        self.assertEqual(a.canonical, a.index)
        self.assertEqual(len(model.list_templates), 1)
        self.assertEqual(len(model.shorthands), 1)

    def test_content_map(self):
        text = '<ref name="a">A</ref><ref>B</ref><ref name="c" />'
        self.assertEqual(
            get_reference_content_map(text), {"a": "A", "__nameless_0": "B"}
        )

    def test_content_map_groups(self):
        text = '<ref name="a" group="g">GA</ref><ref name="a">A</ref>'
        self.assertEqual(
            get_reference_content_map(text), {"a": "A", "g::a": "GA"}
        )

    def test_content_map_list_defined(self):
        text = '<ref name="x" />{{reflist|refs=<ref name="x">X</ref>}}'
        self.assertEqual(get_reference_content_map(text), {"x": "X"})
