"""Raw feed variants and the normaliser that projects them onto the canonical schema."""

from propertyfeed.feed.normalizer import normalize, serialize_raw
from propertyfeed.feed.raw import (
    CommercialObject,
    FeedObject,
    OtherObject,
    ResidentialObject,
    resolve_variant,
)

__all__ = [
    "normalize",
    "serialize_raw",
    "resolve_variant",
    "FeedObject",
    "ResidentialObject",
    "CommercialObject",
    "OtherObject",
]
