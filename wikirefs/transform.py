# Transform engine stages: renaming, identity merging, content
# deduplication, location assignment, replacement planning and output-list
# rebuilding.  Each stage takes a RefModel and returns a new one.
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

import dataclasses
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, TypedDict, Union

from .common import NAMELESS_PREFIX, normalize_whitespace, reference_id
from .references import (
    Location,
    RefModel,
    RefOccurrence,
    RefRecord,
    UseKind,
)
from .render import (
    ListEntry,
    normalize_ref_body,
    ref_open_tag,
    render_ref_self,
    render_ref_tag,
    render_standalone_list,
    update_list_template,
)
from .replacements import Replacement
from .shorthand import ShorthandTarget, plan_shorthand

if TYPE_CHECKING:
    from .core import TransformContext, TransformOptions

KEEP = "keep"
ALL_INLINE = "all_inline"
ALL_LDR = "all_ldr"
LOCATION_MODES: tuple[str, ...] = (KEEP, ALL_INLINE, ALL_LDR)


@dataclass(frozen=True)
class Threshold:
    """Location policy: a reference is list-defined iff it is used at
    least ``min_uses_for_ldr`` times."""

    min_uses_for_ldr: int = 2


LocationMode = Union[str, Threshold]

RenameChange = TypedDict(
    "RenameChange",
    {"from": str, "to": Optional[str]},
)

DedupeChange = TypedDict(
    "DedupeChange",
    {"from": str, "to": str},
)


def normalize_location_mode(mode: Any, ctx: "TransformContext") -> LocationMode:
    """Converts the accepted spellings of a location policy to either one
    of LOCATION_MODES or a Threshold.  Unusable values fall back to
    ``keep`` (or to Threshold(2) for a bad threshold) with a warning."""
    if mode is None or mode == "":
        return KEEP
    if isinstance(mode, str):
        if mode in LOCATION_MODES:
            return mode
        ctx.warning(
            "unknown location mode {!r}, keeping locations".format(mode),
            sortid="transform-location-mode",
        )
        return KEEP
    if isinstance(mode, dict):
        n = mode.get("minUsesForLdr", mode.get("min_uses_for_ldr"))
        mode = Threshold(n) if n is not None else Threshold(0)
    elif isinstance(mode, int) and not isinstance(mode, bool):
        mode = Threshold(mode)
    if isinstance(mode, Threshold):
        n = mode.min_uses_for_ldr
        if isinstance(n, int) and not isinstance(n, bool) and n >= 1:
            return mode
        ctx.warning(
            "invalid use threshold {!r}, using 2".format(n),
            sortid="transform-threshold",
        )
        return Threshold(2)
    ctx.warning(
        "unsupported location mode {!r}, keeping locations".format(mode),
        sortid="transform-location-mode",
    )
    return KEEP


def _rename_lookup(
    rename_map: dict[str, Optional[str]], rec: RefRecord
) -> tuple[bool, Optional[str]]:
    """Looks up ``rec`` in a rename map by identity, then by bare name."""
    if rec.key in rename_map:
        return True, rename_map[rec.key]
    if rec.name is not None and rec.name in rename_map:
        return True, rename_map[rec.name]
    return False, None


def apply_renames(
    model: RefModel,
    rename_map: dict[str, Optional[str]],
    rename_nameless: dict[str, Optional[str]],
) -> tuple[RefModel, list[RenameChange]]:
    """Renames references.  A new name of None strips the name.  Unnamed
    references are named from ``rename_nameless`` by identity; entries
    whose key matches no unnamed reference are handed out in order to the
    unnamed references that were not named explicitly."""
    rename_map = dict(
        (k, v) for k, v in rename_map.items() if k and v != k
    )
    changes: list[RenameChange] = []
    records: dict[int, RefRecord] = {}
    applied: set[str] = set()
    explicit: set[int] = set()
    nameless = sum(1 for rec in model if rec.name is None)

    def renamed(rec: RefRecord, name: Optional[str]) -> RefRecord:
        nonlocal nameless
        if name:
            key = reference_id(name, rec.group)
        else:
            key = "{}{}".format(NAMELESS_PREFIX, nameless)
            nameless += 1
        return dataclasses.replace(rec, name=name, key=key)

    for rec in model:
        if rec.name is not None:
            found, new = _rename_lookup(rename_map, rec)
            if found and (new is None or (new and new != rec.name)):
                changes.append({"from": rec.name, "to": new})
                rec = renamed(rec, new)
        elif rec.key in rename_nameless:
            applied.add(rec.key)
            explicit.add(rec.index)
            new = rename_nameless[rec.key]
            if new:
                changes.append({"from": rec.key, "to": new})
                rec = dataclasses.replace(
                    rec, name=new, key=reference_id(new, rec.group)
                )
        records[rec.index] = rec

    remaining = [v for k, v in rename_nameless.items() if k not in applied]
    for rec in list(records.values()):
        if not remaining:
            break
        if rec.name is not None or rec.index in explicit:
            continue
        new = remaining.pop(0)
        if new:
            changes.append({"from": rec.key, "to": new})
            records[rec.index] = dataclasses.replace(
                rec, name=new, key=reference_id(new, rec.group)
            )
    return dataclasses.replace(model, records=records), changes


def merge_identities(model: RefModel) -> RefModel:
    """Merges records that share an identity after renaming.  The first
    record survives with the union of all definitions and uses."""
    survivors: dict[str, RefRecord] = {}
    for rec in model:
        other = survivors.get(rec.key)
        if other is None:
            survivors[rec.key] = rec
            continue

        def merged(a: tuple, b: tuple) -> tuple:
            return tuple(sorted(a + b, key=lambda o: o.start))

        survivors[rec.key] = dataclasses.replace(
            other,
            definitions=merged(other.definitions, rec.definitions),
            list_definitions=merged(
                other.list_definitions, rec.list_definitions
            ),
            uses=merged(other.uses, rec.uses),
        )
    records = dict((rec.index, rec) for rec in survivors.values())
    return dataclasses.replace(model, records=records)


def apply_dedupe(model: RefModel) -> tuple[RefModel, list[DedupeChange]]:
    """Points every named reference whose whitespace-normalized body
    equals that of an earlier named reference in the same group at the
    earlier one.  Unnamed references are never merged."""
    first: dict[tuple[Optional[str], str], RefRecord] = {}
    changes: list[DedupeChange] = []
    records: dict[int, RefRecord] = {}
    for rec in model:
        content = rec.content
        if rec.name is not None and content:
            norm = (rec.group, normalize_whitespace(content))
            canonical = first.get(norm)
            if canonical is None:
                first[norm] = rec
            else:
                assert canonical.name is not None
                changes.append({"from": rec.name, "to": canonical.name})
                rec = dataclasses.replace(rec, canonical=canonical.index)
        records[rec.index] = rec
    return dataclasses.replace(model, records=records), changes


def _merged_class(model: RefModel, canonical: RefRecord) -> list[RefRecord]:
    return [
        rec
        for rec in model
        if model.find(rec.index).index == canonical.index
    ]


def _has_body_use(uses: list[RefOccurrence]) -> bool:
    return any(u.kind != UseKind.SHORTHAND for u in uses)


def assign_locations(
    model: RefModel, mode: LocationMode, ctx: "TransformContext"
) -> RefModel:
    """Decides for every canonical reference whether its body is placed
    inline or in an output-list template."""
    records: dict[int, RefRecord] = {}
    for rec in model:
        if rec.canonical != rec.index:
            records[rec.index] = rec
            continue
        uses = model.aggregate_uses(rec)
        if mode == KEEP:
            if rec.list_definitions:
                target = Location.LIST_DEFINED
            else:
                target = Location.INLINE
        elif mode == ALL_INLINE:
            target = Location.INLINE
        elif mode == ALL_LDR:
            target = Location.LIST_DEFINED
        else:
            assert isinstance(mode, Threshold)
            if len(uses) >= mode.min_uses_for_ldr:
                target = Location.LIST_DEFINED
            else:
                target = Location.INLINE
        if rec.name is None:
            # Nothing can cite an unnamed list definition, so one
            # without uses stays where it is
            if uses or not rec.list_definitions:
                target = Location.INLINE
            else:
                target = Location.LIST_DEFINED
        elif (
            target == Location.INLINE
            and rec.content
            and not _has_body_use(uses)
        ):
            if uses:
                ctx.warning(
                    "reference {!r} is only cited through shorthand "
                    "templates, keeping it list-defined".format(rec.name),
                    sortid="transform-inline-no-use",
                )
            else:
                ctx.debug(
                    "reference {!r} has no uses, keeping it "
                    "list-defined".format(rec.name),
                    sortid="transform-inline-no-use",
                )
            target = Location.LIST_DEFINED
        records[rec.index] = dataclasses.replace(rec, target=target)
    return dataclasses.replace(model, records=records)


@dataclass
class Plan:
    replacements: list[Replacement] = field(default_factory=list)
    moved_to_inline: list[str] = field(default_factory=list)
    moved_to_ldr: list[str] = field(default_factory=list)

    def add(self, text: str, start: int, end: int, rendered: str) -> None:
        """Plans a replacement unless it would reproduce the text."""
        if text[start:end] != rendered:
            self.replacements.append(Replacement(start, end, rendered))


def _shorthand_targets(model: RefModel) -> dict[int, dict[int, RefRecord]]:
    ret: dict[int, dict[int, RefRecord]] = defaultdict(dict)
    for rec in model:
        canonical = model.find(rec.index)
        for occ in rec.uses:
            if occ.kind == UseKind.SHORTHAND:
                assert occ.shorthand_id is not None
                ret[occ.shorthand_id][occ.entry_index] = canonical
    return ret


def _plan_shorthands(
    model: RefModel,
    opts: "TransformOptions",
    ctx: "TransformContext",
    plan: Plan,
) -> None:
    targets = _shorthand_targets(model)
    for sh in model.shorthands:
        by_ordinal = targets.get(sh.id, {})
        resolved: list[ShorthandTarget] = []
        for i, entry in enumerate(sh.name_entries):
            canonical = by_ordinal.get(i)
            if canonical is None:
                resolved.append(ShorthandTarget(entry.value, None))
            else:
                resolved.append(
                    ShorthandTarget(canonical.name, canonical.content)
                )
        for r in plan_shorthand(sh, resolved, opts.use_shorthand, ctx):
            plan.add(model.text, r.start, r.end, r.text)


def _keep_body(occ: RefOccurrence, normalize: bool) -> str:
    content = occ.content or ""
    if normalize:
        return normalize_ref_body(content)
    return content


def _plan_keep(
    model: RefModel,
    opts: "TransformOptions",
    ctx: "TransformContext",
    plan: Plan,
) -> None:
    """Plans replacements that keep the form of every occurrence, only
    changing what renaming, deduplication, shorthand preference or body
    normalization require."""
    text = model.text
    prefer_shorthand = opts.use_shorthand is True
    for rec in model:
        canonical = model.find(rec.index)
        merged_away = canonical is not rec
        name = canonical.name
        content = canonical.content
        copies = name is None and rec.original_name is not None
        if copies and len(rec.uses) > 1:
            ctx.warning(
                "reference {!r} lost its name; copying its body to each of "
                "its {} uses".format(rec.original_name, len(rec.uses)),
                sortid="transform-unnamed-copies",
            )
        for occ in rec.uses:
            if occ.kind == UseKind.SHORTHAND:
                continue
            if occ.kind == UseKind.FULL and not merged_away:
                if occ.name == name and not opts.normalize_bodies:
                    continue
                if copies and not (occ.content or "").strip() and content:
                    rendered = render_ref_tag(
                        None, occ.group, content, opts.normalize_bodies
                    )
                else:
                    rendered = (
                        ref_open_tag(name, occ.group)
                        + _keep_body(occ, opts.normalize_bodies)
                        + "</ref>"
                    )
                plan.add(text, occ.start, occ.end, rendered)
                continue
            if name is None:
                if copies and content:
                    rendered = render_ref_tag(
                        None, occ.group, content, opts.normalize_bodies
                    )
                    plan.add(text, occ.start, occ.end, rendered)
                continue
            if occ.name == name and not merged_away and not prefer_shorthand:
                continue
            rendered = render_ref_self(name, canonical.group, prefer_shorthand)
            plan.add(text, occ.start, occ.end, rendered)

        for occ in rec.list_definitions:
            if merged_away or (name is None and rec.uses):
                end = occ.end
                if text[end : end + 1] == "\n":
                    end += 1
                plan.replacements.append(Replacement(occ.start, end, ""))
                continue
            if occ.name == name and not opts.normalize_bodies:
                continue
            group = occ.group if occ.own_group else None
            rendered = (
                ref_open_tag(name, group)
                + _keep_body(occ, opts.normalize_bodies)
                + "</ref>"
            )
            plan.add(text, occ.start, occ.end, rendered)


def _plan_moving(
    model: RefModel,
    opts: "TransformOptions",
    ctx: "TransformContext",
    plan: Plan,
) -> None:
    """Plans replacements that put every body where its target location
    says: inline at the first tag use, or in an output-list template."""
    text = model.text
    prefer_shorthand = opts.use_shorthand is True
    for rec in model:
        if rec.canonical != rec.index:
            continue
        members = _merged_class(model, rec)
        uses = model.aggregate_uses(rec)
        content = rec.content
        name = rec.name
        if name is not None:
            had_list = any(
                occ.content and occ.content.strip()
                for m in members
                for occ in m.list_definitions
            )
            had_inline = any(
                occ.content and occ.content.strip()
                for m in members
                for occ in m.definitions
            )
            if rec.target == Location.INLINE and had_list:
                plan.moved_to_inline.append(name)
            elif rec.target == Location.LIST_DEFINED and had_inline:
                plan.moved_to_ldr.append(name)

        holder: Optional[RefOccurrence] = None
        if rec.target == Location.INLINE and content:
            for u in uses:
                if u.kind != UseKind.SHORTHAND:
                    holder = u
                    break

        tag_uses = [u for u in uses if u.kind != UseKind.SHORTHAND]
        copies = name is None and rec.original_name is not None
        if copies and len(tag_uses) > 1:
            ctx.warning(
                "reference {!r} lost its name; copying its body to each of "
                "its {} uses".format(rec.original_name, len(tag_uses)),
                sortid="transform-unnamed-copies",
            )
        for u in tag_uses:
            if u is holder or (name is None and content):
                assert content is not None
                rendered = render_ref_tag(
                    name, rec.group, content, opts.normalize_bodies
                )
            elif name is None:
                # An unnamed tag without a body cannot be written any
                # other way
                continue
            else:
                rendered = render_ref_self(name, rec.group, prefer_shorthand)
            plan.add(text, u.start, u.end, rendered)


def list_entries(model: RefModel) -> list[ListEntry]:
    """List-defined canonical references with a body, in order of first
    occurrence."""
    entries: list[ListEntry] = []
    for rec in model:
        if rec.canonical != rec.index:
            continue
        if rec.target != Location.LIST_DEFINED:
            continue
        content = rec.content
        if not content:
            continue
        entries.append(ListEntry(rec.name, rec.group, content))
    return entries


def rebuild_lists(model: RefModel, opts: "TransformOptions", plan: Plan) -> None:
    """Rewrites the ``refs=`` parameter of every output-list template.
    Entries go to the first template whose ``group=`` matches their group;
    groups without a template get a new one appended to the page."""
    text = model.text
    by_group: dict[Optional[str], list[ListEntry]] = defaultdict(list)
    for entry in list_entries(model):
        by_group[entry.group].append(entry)
    served: set[Optional[str]] = set()
    for tpl in model.list_templates:
        group_param = tpl.param("group")
        group = group_param.value if group_param and group_param.value else None
        if group in served:
            entries: list[ListEntry] = []
        else:
            served.add(group)
            entries = by_group.get(group, [])
        rendered = update_list_template(
            text, tpl, entries, opts.sort_refs, opts.normalize_bodies
        )
        plan.add(text, tpl.start, tpl.end, rendered)
    appended: list[str] = []
    for group, entries in by_group.items():
        if group in served or not entries:
            continue
        appended.append(
            render_standalone_list(
                entries, group, opts.sort_refs, opts.normalize_bodies
            )
        )
    if appended:
        plan.replacements.append(
            Replacement(len(text), len(text), "".join(appended))
        )


def plan_replacements(
    model: RefModel,
    opts: "TransformOptions",
    mode: LocationMode,
    ctx: "TransformContext",
) -> Plan:
    """Plans one replacement per changed occurrence span, plus the
    output-list rebuild when references may move."""
    plan = Plan()
    _plan_shorthands(model, opts, ctx, plan)
    if mode == KEEP:
        _plan_keep(model, opts, ctx, plan)
    else:
        _plan_moving(model, opts, ctx, plan)
        rebuild_lists(model, opts, plan)
    return plan
