"""Propertyfeed core domain models.

This module defines the canonical :class:`CanonicalListing` record persisted
per listing, plus the two satellite records managed alongside it:
:class:`RemovalQueueEntry` and :class:`ImageRecord`.

The feed normaliser (:func:`propertyfeed.feed.normalizer.normalize`) is the
only producer of :class:`CanonicalListing` instances in production code.

Typical usage::

    from propertyfeed.core.models import CanonicalListing, ListingType

    listing = normalize(raw)
    assert listing.type is ListingType.RESIDENTIAL
"""

from __future__ import annotations

from datetime import date
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator

__all__ = [
    "ListingType",
    "CanonicalListing",
    "RemovalQueueEntry",
    "ImageRecord",
]

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ListingType(StrEnum):
    """Top-level listing category.

    Serialises as a plain string so DB storage stays free of enum plumbing.
    """

    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Canonical listing
# ---------------------------------------------------------------------------


class CanonicalListing(BaseModel):
    """Flat, normalised projection of one feed object.

    The model is **frozen**: ``system_id`` is immutable after creation and
    updates go through a fresh normalisation rather than field mutation.

    Attributes:
        system_id: Upstream ``ObjectSystemID``; unique key of the row.
        object_code: Upstream ``ObjectCode``; may change between updates.
        type: Listing category.
        property_type: Category-specific subtype (``"house"``,
            ``"retail-space"``…) or ``"other"``; ``None`` for
            :attr:`ListingType.OTHER`.
        street: Street name, or the joined address lines for international
            addresses.
        number: House number; ``None`` for international addresses.
        number_addition: House number suffix; ``None`` if absent.
        postcode: ``None`` for international addresses.
        city: Place name.
        country: ``None`` for commercial listings.
        object_status: Free-text availability status.
        buy: Listing is for sale.
        buy_price: Sale price; always ``None`` when ``buy`` is false.
        buy_prefix: Display text before the sale price.
        buy_suffix: Display text after the sale price.
        rent: Listing is for rent.
        rent_price: Rental price; always ``None`` when ``rent`` is false.
        rent_prefix: Display text before the rental price.
        rent_suffix: Display text after the rental price.
        last_changed: Upstream modification date.
        raw: The original feed record serialised as JSON.
    """

    model_config = {"frozen": True}

    system_id: str = Field(..., min_length=1)
    object_code: str | None = None
    type: ListingType
    property_type: str | None = None

    street: str | None = None
    number: str | None = None
    number_addition: str | None = None
    postcode: str | None = None
    city: str | None = None
    country: str | None = None

    object_status: str | None = None

    buy: bool = False
    buy_price: float | None = None
    buy_prefix: str | None = None
    buy_suffix: str | None = None

    rent: bool = False
    rent_price: float | None = None
    rent_prefix: str | None = None
    rent_suffix: str | None = None

    last_changed: date
    raw: str

    @model_validator(mode="after")
    def _prices_follow_flags(self) -> CanonicalListing:
        """A price may only be set when its sale/rent flag is set."""
        if not self.buy and self.buy_price is not None:
            raise ValueError("buy_price must be None when buy is False")
        if not self.rent and self.rent_price is not None:
            raise ValueError("rent_price must be None when rent is False")
        return self


# ---------------------------------------------------------------------------
# Satellite records
# ---------------------------------------------------------------------------


class RemovalQueueEntry(BaseModel):
    """A scheduled future removal for one listing.

    Several entries may exist for the same ``system_id``.
    """

    model_config = {"frozen": True}

    system_id: str
    removal_date: date

    def is_due(self, today: date) -> bool:
        """``True`` when the removal date is on or before *today*."""
        return self.removal_date <= today


class ImageRecord(BaseModel):
    """One image attached to a listing, with its display position."""

    model_config = {"frozen": True}

    system_id: str
    filename: str
    local_name: str | None = None
    display_order: int = Field(default=0, ge=0)
