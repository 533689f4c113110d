#!/usr/bin/env python3
#
# Command line interface to the reference transforms of wikirefs
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import argparse
import dataclasses
import json
import logging
import sys
from typing import Any, Optional

from wikirefs import (
    TransformOptions,
    extract_metadata,
    parse_references,
    transform_wikitext,
)
from wikirefs.common import DEFAULT_LIST_TEMPLATES
from wikirefs.transform import LOCATION_MODES, Threshold


def parse_rename(value: str) -> tuple[str, Optional[str]]:
    """Parses OLD=NEW; an empty NEW removes the name."""
    if "=" not in value:
        raise argparse.ArgumentTypeError(
            "expected OLD=NEW, got {!r}".format(value)
        )
    old, new = value.split("=", 1)
    if not old:
        raise argparse.ArgumentTypeError("empty reference name in {!r}".format(value))
    return old, new or None


def build_options(args: argparse.Namespace) -> TransformOptions:
    data: dict[str, Any] = {}
    if args.options:
        with open(args.options, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("{}: expected a JSON object".format(args.options))
    opts = TransformOptions.from_dict(data)
    if args.rename:
        opts.rename_map = dict(opts.rename_map)
        opts.rename_map.update(args.rename)
    if args.dedupe:
        opts.dedupe = True
    if args.min_uses is not None:
        opts.location_mode = Threshold(args.min_uses)
    elif args.location:
        opts.location_mode = args.location
    if args.sort:
        opts.sort_refs = True
    if args.shorthand is not None:
        opts.use_shorthand = args.shorthand
    if args.normalize:
        opts.normalize_bodies = True
    if args.list_template:
        opts.list_template_names = tuple(args.list_template)
    return opts


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Rename, deduplicate and relocate the references of a "
        "WikiText page"
    )
    parser.add_argument(
        "path", nargs="?", default="-", help="WikiText file (default: stdin)"
    )
    parser.add_argument("-o", "--output", help="write the result to this file")
    parser.add_argument("--options", help="JSON file with transform options")
    parser.add_argument(
        "--rename",
        action="append",
        type=parse_rename,
        metavar="OLD=NEW",
        help="rename a reference (repeatable; empty NEW removes the name)",
    )
    parser.add_argument(
        "--dedupe", action="store_true", help="merge references with equal bodies"
    )
    parser.add_argument(
        "--location", choices=LOCATION_MODES, help="where reference bodies go"
    )
    parser.add_argument(
        "--min-uses",
        type=int,
        metavar="N",
        help="list-define references used at least N times",
    )
    parser.add_argument(
        "--sort", action="store_true", help="sort list-defined references by name"
    )
    parser.add_argument(
        "--shorthand",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="prefer (or expand) the shorthand citation template",
    )
    parser.add_argument(
        "--normalize", action="store_true", help="normalize reference bodies"
    )
    parser.add_argument(
        "--list-template",
        action="append",
        metavar="NAME",
        help="output-list template name (repeatable)",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="print the references and their metadata as JSON instead",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="log debug messages"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    if args.path == "-":
        text = sys.stdin.read()
    else:
        with open(args.path, "r", encoding="utf-8") as f:
            text = f.read()

    if args.list:
        names = tuple(args.list_template or DEFAULT_LIST_TEMPLATES)
        data = []
        for ref in parse_references(text, names):
            d = dataclasses.asdict(ref)
            d["metadata"] = dataclasses.asdict(extract_metadata(ref))
            data.append(d)
        out = json.dumps(data, indent=2, ensure_ascii=False)
        out += "\n"
    else:
        try:
            opts = build_options(args)
        except (OSError, ValueError) as e:
            parser.error(str(e))
        title = None if args.path == "-" else args.path
        result = transform_wikitext(text, opts, title=title)
        out = result.wikitext
        summary = {"changes": result.changes, "warnings": result.warnings}
        print(json.dumps(summary, indent=2, ensure_ascii=False), file=sys.stderr)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(out)
    else:
        sys.stdout.write(out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
