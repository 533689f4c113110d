# Tests for properties that every transform must keep, checked over a set
# of sample pages
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import unittest

from wikirefs import (
    Threshold,
    TransformOptions,
    get_reference_content_map,
    parse_references,
    transform_wikitext,
)

SAMPLES = [
    "",
    "No references at all.",
    'A<ref name="a">Alpha</ref> b<ref name="a" /> c<ref>Anon</ref>',
    """Intro<ref name="x" /> and {{r|y|p=3}}.<ref name="z" group="n">Note</ref>

==References==
{{reflist|refs=
<ref name="x">Ex</ref>
<ref name="y">Why</ref>
}}
{{reflist|group=n}}
""",
    'Dup<ref name="d1">Same body</ref> dup<ref name="d2">Same  body</ref>'
    ' <!-- <ref name="hidden">H</ref> --><nowiki><ref name="n" /></nowiki>',
    'See {{r|a|p=2|b|pp2=4-5}} and <ref name="a">A</ref><ref name="b">B</ref>',
]

OPTION_SETS = [
    TransformOptions(),
    TransformOptions(location_mode="all_inline"),
    TransformOptions(location_mode="all_ldr", sort_refs=True),
    TransformOptions(location_mode=Threshold(2), dedupe=True),
    TransformOptions(use_shorthand=True),
    TransformOptions(use_shorthand=False, location_mode="all_ldr"),
]


class PropertyTests(unittest.TestCase):
    def test_no_options_is_identity(self):
        for text in SAMPLES:
            result = transform_wikitext(text)
            self.assertEqual(result.wikitext, text)
            self.assertEqual(
                result.changes,
                {"renamed": [], "deduped": [], "movedToInline": [], "movedToLdr": []},
            )

    def test_idempotent(self):
        for text in SAMPLES:
            for opts in OPTION_SETS:
                once = transform_wikitext(text, opts).wikitext
                twice = transform_wikitext(once, opts).wikitext
                self.assertEqual(twice, once, (text, opts))

    def test_bodies_preserved(self):
        for text in SAMPLES:
            before = get_reference_content_map(text)
            for opts in OPTION_SETS:
                if opts.dedupe:
                    continue
                after = get_reference_content_map(
                    transform_wikitext(text, opts).wikitext
                )
                for key, content in before.items():
                    if key.startswith("__nameless_"):
                        continue
                    self.assertEqual(after.get(key), content, (text, opts, key))

    def test_protected_spans_untouched(self):
        text = SAMPLES[4]
        for opts in OPTION_SETS:
            out = transform_wikitext(text, opts).wikitext
            self.assertIn('<!-- <ref name="hidden">H</ref> -->', out)
            self.assertIn('<nowiki><ref name="n" /></nowiki>', out)

    def test_rename_by_identity_and_name_agree(self):
        text = SAMPLES[2]
        a = transform_wikitext(text, {"renameMap": {"a": "b"}})
        b = transform_wikitext(text, {"renameMap": {"a": "b", "zzz": "q"}})
        self.assertEqual(a.wikitext, b.wikitext)
        self.assertEqual([r.name for r in parse_references(a.wikitext)],
                         ["b", None])

    def test_expand_then_collapse(self):
        text = "See {{r|a|p=2|b|group2=g|pp2=4-5}}."
        expanded = transform_wikitext(text, {"useShorthand": False}).wikitext
        self.assertEqual(
            expanded,
            'See <ref name="a" />{{rp|p=2}}<ref name="b" group="g" />{{rp|pp=4-5}}.',
        )
        collapsed = transform_wikitext(expanded, {"useShorthand": True}).wikitext
        self.assertEqual(collapsed, text)

    def test_dedupe_leaves_one_body(self):
        result = transform_wikitext(SAMPLES[4], {"dedupe": True})
        self.assertEqual(result.changes["deduped"], [{"from": "d2", "to": "d1"}])
        refs = [r for r in parse_references(result.wikitext) if r.name]
        self.assertEqual([r.name for r in refs], ["d1"])
        self.assertEqual(len(refs[0].uses), 2)

    def test_threshold_placement(self):
        text = 'A<ref name="one">1</ref> B<ref name="two">2</ref><ref name="two" />'
        expected = {1: set(), 2: set(["one"]), 3: set(["one", "two"])}
        for n, names in expected.items():
            out = transform_wikitext(text, {"locationMode": Threshold(n)}).wikitext
            running = out.split("{{reflist")[0]
            inline = set(
                name for name in ("one", "two")
                if '<ref name="{}">'.format(name) in running
            )
            self.assertEqual(inline, names, n)

    def test_lossy_shorthand_abstains(self):
        for text in ("{{r|a|lang=en}}", "{{r|a|p3=1}}", "{{r|a|p=1|p=2}}"):
            result = transform_wikitext(text, {"useShorthand": False})
            self.assertEqual(result.wikitext, text)

    def test_unnamed_never_deduped(self):
        text = "<ref>Same</ref><ref>Same</ref>"
        result = transform_wikitext(text, {"dedupe": True, "locationMode": "all_ldr"})
        self.assertEqual(result.wikitext, text)
        self.assertEqual(result.changes["deduped"], [])
