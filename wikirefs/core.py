# Transform options, per-call context for collecting warnings, and the
# transform_wikitext() entry point that runs the transform stages in order.
#
# Copyright (c) 2020-2022 Tatu Ylonen.  See file LICENSE and https://ylonen.org

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Optional, TypedDict, Union

from .common import DEFAULT_LIST_TEMPLATES
from .logging_utils import logger
from .references import build_ref_model
from .replacements import apply_replacements
from .shorthand import collapse
from .transform import (
    KEEP,
    DedupeChange,
    LocationMode,
    RenameChange,
    apply_dedupe,
    apply_renames,
    assign_locations,
    merge_identities,
    normalize_location_mode,
    plan_replacements,
)


class ErrorMessageData(TypedDict):
    msg: str
    trace: str
    title: Optional[str]
    stage: str
    called_from: str


class CollatedErrorReturnData(TypedDict):
    warnings: list[ErrorMessageData]
    debugs: list[ErrorMessageData]


class TransformContext:
    """Collects the advisory messages of one transform call.  Messages are
    also sent to the package logger."""

    def __init__(self, title: Optional[str] = None) -> None:
        assert isinstance(title, (str, type(None)))
        self.title = title
        # Name of the running stage, included in messages
        self.stage = ""
        self.warnings: list[ErrorMessageData] = []
        self.debugs: list[ErrorMessageData] = []

    def _fmt_errmsg(self, kind: str, msg: str, trace: Optional[str]) -> str:
        loc = self.title or "<page>"
        if self.stage:
            loc += "/" + self.stage
        if trace:
            msg += "\n" + trace
        return "{}: {}: {}".format(loc, kind, msg)

    def _record(
        self, msg: str, trace: Optional[str], sortid: str
    ) -> ErrorMessageData:
        assert isinstance(msg, str)
        assert isinstance(trace, (str, type(None)))
        # sortid is a static string naming the call site, used for
        # bucketing messages
        assert isinstance(sortid, str)
        return {
            "msg": msg,
            "trace": trace or "",
            "title": self.title,
            "stage": self.stage,
            "called_from": sortid,
        }

    def warning(
        self, msg: str, trace: Optional[str] = None, sortid="XYZunsorted"
    ) -> None:
        """Logs a warning.  It is also saved in self.warnings and returned
        to the caller in TransformResult.warnings."""
        self.warnings.append(self._record(msg, trace, sortid))
        logger.warning(self._fmt_errmsg("WARNING", msg, trace))

    def debug(
        self, msg: str, trace: Optional[str] = None, sortid="XYZunsorted"
    ) -> None:
        """Logs a debug message.  It is also saved in self.debugs."""
        self.debugs.append(self._record(msg, trace, sortid))
        logger.debug(self._fmt_errmsg("DEBUG", msg, trace))

    def to_return(self) -> CollatedErrorReturnData:
        return {
            "warnings": self.warnings,
            "debugs": self.debugs,
        }


# Option names accepted by TransformOptions.from_dict(), in camelCase and
# snake_case
_OPTION_KEYS: dict[str, str] = {
    "renameMap": "rename_map",
    "renameNameless": "rename_nameless",
    "dedupe": "dedupe",
    "locationMode": "location_mode",
    "sortRefs": "sort_refs",
    "useShorthand": "use_shorthand",
    "outputListTemplateNames": "list_template_names",
    "normalizeBodies": "normalize_bodies",
}
_OPTION_KEYS.update((v, v) for v in list(_OPTION_KEYS.values()))


@dataclass
class TransformOptions:
    """Options of transform_wikitext().  The defaults leave the text
    unchanged.

    ``use_shorthand`` is tri-state: None keeps each occurrence in the form
    it is written in, True writes reference-only uses as shorthand
    templates and combines adjacent ones, False expands shorthand
    templates into tags."""

    rename_map: dict[str, Optional[str]] = field(default_factory=dict)
    rename_nameless: dict[str, Optional[str]] = field(default_factory=dict)
    dedupe: bool = False
    location_mode: Any = KEEP
    sort_refs: bool = False
    use_shorthand: Optional[bool] = None
    list_template_names: tuple[str, ...] = DEFAULT_LIST_TEMPLATES
    normalize_bodies: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransformOptions":
        assert isinstance(data, dict)
        kwargs: dict[str, Any] = {}
        for k, v in data.items():
            attr = _OPTION_KEYS.get(k)
            if attr is None:
                logger.warning("ignoring unknown transform option {!r}".format(k))
                continue
            if v is None and attr != "use_shorthand":
                continue
            kwargs[attr] = v
        if "list_template_names" in kwargs:
            kwargs["list_template_names"] = tuple(kwargs["list_template_names"])
        return cls(**kwargs)


class ChangeSummary(TypedDict):
    renamed: list[RenameChange]
    deduped: list[DedupeChange]
    movedToInline: list[str]
    movedToLdr: list[str]


@dataclass
class TransformResult:
    wikitext: str
    changes: ChangeSummary
    warnings: list[str] = field(default_factory=list)


def _list_template_names(names: Optional[Iterable[str]]) -> tuple[str, ...]:
    if not names:
        return DEFAULT_LIST_TEMPLATES
    if isinstance(names, str):
        return (names,)
    return tuple(names)


def transform_wikitext(
    wikitext: str,
    options: Union[TransformOptions, dict[str, Any], None] = None,
    title: Optional[str] = None,
) -> TransformResult:
    """Rewrites the citation markup of a page.  The stages run in order:
    renaming, merging of references that now share an identity,
    deduplication, location assignment, and replacement planning
    (including the output-list rebuild).  The planned replacements are
    applied to the original text; with ``use_shorthand`` set, adjacent
    reference-only uses are then combined into chained shorthand
    templates.  Text that no stage touches is returned byte for byte.
    ``title`` is only used in messages."""
    assert isinstance(wikitext, str)
    if options is None:
        opts = TransformOptions()
    elif isinstance(options, dict):
        opts = TransformOptions.from_dict(options)
    else:
        assert isinstance(options, TransformOptions)
        opts = options
    ctx = TransformContext(title)
    list_names = _list_template_names(opts.list_template_names)

    ctx.stage = "parse"
    model = build_ref_model(wikitext, list_names)
    ctx.stage = "rename"
    model, renamed = apply_renames(
        model, opts.rename_map or {}, opts.rename_nameless or {}
    )
    model = merge_identities(model)
    deduped: list[DedupeChange] = []
    if opts.dedupe:
        ctx.stage = "dedupe"
        model, deduped = apply_dedupe(model)
    ctx.stage = "locate"
    mode: LocationMode = normalize_location_mode(opts.location_mode, ctx)
    model = assign_locations(model, mode, ctx)
    ctx.stage = "render"
    plan = plan_replacements(model, opts, mode, ctx)
    text = apply_replacements(wikitext, plan.replacements)
    if opts.use_shorthand is True:
        ctx.stage = "shorthand"
        text = collapse(text, ctx, list_names)
    ctx.stage = ""

    changes: ChangeSummary = {
        "renamed": renamed,
        "deduped": deduped,
        "movedToInline": plan.moved_to_inline,
        "movedToLdr": plan.moved_to_ldr,
    }
    return TransformResult(text, changes, [w["msg"] for w in ctx.warnings])
