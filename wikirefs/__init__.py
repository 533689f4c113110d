from .core import (
    TransformContext,
    TransformOptions,
    TransformResult,
    transform_wikitext,
)
from .metadata import RefMetadata, extract_metadata
from .references import (
    Reference,
    ReferenceUse,
    get_reference_content_map,
    parse_references,
)
from .transform import Threshold

__all__ = (
    "parse_references",
    "transform_wikitext",
    "get_reference_content_map",
    "extract_metadata",
    "TransformOptions",
    "TransformResult",
    "TransformContext",
    "Threshold",
    "Reference",
    "ReferenceUse",
    "RefMetadata",
)
