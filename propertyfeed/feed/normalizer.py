"""Feed normalisation: raw feed object → :class:`CanonicalListing`.

:func:`normalize` is a pure function.  It resolves the raw mapping into its
tagged variant (see :mod:`propertyfeed.feed.raw`), then projects that
variant onto the flat canonical schema:

* **Category**: ``residential`` / ``commercial`` / ``other``, with a
  category-specific ``property_type``.
* **Address**: domestic, international or commercial form.
* **Pricing**: sale and rental display strings derived from the upstream
  price prefix and conditions.

Malformed records raise
:class:`~propertyfeed.core.exceptions.MalformedListingError` before any
store interaction can happen.

Typical usage::

    from propertyfeed.feed.normalizer import normalize

    listing = normalize(raw)
    await store.create(listing)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from propertyfeed.core.models import CanonicalListing, ListingType
from propertyfeed.feed.raw import (
    CommercialAddress,
    CommercialObject,
    DomesticAddress,
    FeedObject,
    InternationalAddress,
    RentalTerms,
    ResidentialObject,
    SaleTerms,
    resolve_variant,
)

__all__ = [
    "normalize",
    "serialize_raw",
    "sale_display",
    "rental_display",
    "capitalize_first",
    "ASKING_PRICE",
    "ON_REQUEST",
    "RENTAL_PRICE",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Display vocabulary
# ---------------------------------------------------------------------------

ASKING_PRICE: str = "Asking price"
ON_REQUEST: str = "on request"
RENTAL_PRICE: str = "Rental price"

#: Upstream sale prefix meaning "price on request".  Compared case-sensitively.
_PRICE_ON_REQUEST = "prijs op aanvraag"

#: Upstream sale condition → display suffix.
_SALE_SUFFIXES: dict[str, str] = {
    "kosten koper": "k.k.",  # costs to buyer
    "vrij op naam": "v.o.n.",  # free of transfer tax
}

#: Upstream rental condition → display suffix.  Anything else is monthly.
_RENTAL_SUFFIXES: dict[str, str] = {
    "per jaar": "/ yr.",
    "per vierkante meter per jaar": "/ m<sup>2</sup> / yr.",
}
_MONTHLY_SUFFIX = "/ mo."


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize(raw: Mapping[str, Any]) -> CanonicalListing:
    """Normalise one raw feed object into a :class:`CanonicalListing`.

    Args:
        raw: The feed ``<Object>`` as a mapping.  Never mutated.

    Returns:
        The canonical projection, with ``raw`` holding *raw* serialised
        verbatim as JSON.

    Raises:
        MalformedListingError: If a block required by the record's category
            is missing.
    """
    obj = resolve_variant(raw)

    fields: dict[str, Any] = {
        "system_id": obj.system_id,
        "object_code": obj.object_code,
        "last_changed": obj.details.last_changed,
        "raw": serialize_raw(raw),
    }
    fields.update(_category_fields(obj))
    fields.update(_sale_fields(obj.details.sale))
    fields.update(_rental_fields(obj.details.rental))

    listing = CanonicalListing(**fields)
    logger.debug(
        "Normalised %s as %s/%s (buy=%s rent=%s)",
        listing.system_id,
        listing.type,
        listing.property_type,
        listing.buy,
        listing.rent,
        extra={"system_id": listing.system_id},
    )
    return listing


def serialize_raw(raw: Mapping[str, Any]) -> str:
    """Serialise a raw feed object verbatim for the ``raw`` column."""
    return json.dumps(raw, ensure_ascii=False, default=str)


def capitalize_first(text: str) -> str:
    """Upper-case the first character of *text*, leaving the rest untouched.

    Unlike :meth:`str.capitalize`, the remainder is not lower-cased:
    ``"vanaf EUR"`` becomes ``"Vanaf EUR"``.
    """
    return text[:1].upper() + text[1:]


def sale_display(prefix: str | None, condition: str | None) -> tuple[str, str]:
    """Return the ``(buy_prefix, buy_suffix)`` display pair.

    Args:
        prefix: Upstream ``Prijsvoorvoegsel``, if any.
        condition: Upstream ``KoopConditie``, if any.
    """
    if prefix == _PRICE_ON_REQUEST:
        return ASKING_PRICE, ON_REQUEST

    display_prefix = capitalize_first(prefix) if prefix else ASKING_PRICE
    suffix = _SALE_SUFFIXES.get(condition or "", "")
    return display_prefix, suffix


def rental_display(condition: str | None) -> tuple[str, str]:
    """Return the ``(rent_prefix, rent_suffix)`` display pair."""
    return RENTAL_PRICE, _RENTAL_SUFFIXES.get(condition or "", _MONTHLY_SUFFIX)


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


def _category_fields(obj: FeedObject) -> dict[str, Any]:
    if isinstance(obj, ResidentialObject):
        return {
            "type": ListingType.RESIDENTIAL,
            "property_type": obj.property_type,
            "object_status": obj.status,
            **_address_fields(obj.address),
        }
    if isinstance(obj, CommercialObject):
        return {
            "type": ListingType.COMMERCIAL,
            "property_type": obj.property_type,
            "object_status": obj.status,
            **_address_fields(obj.address),
        }
    return {"type": ListingType.OTHER}


def _address_fields(
    address: DomesticAddress | InternationalAddress | CommercialAddress,
) -> dict[str, str | None]:
    if isinstance(address, DomesticAddress):
        return {
            "street": address.street,
            "number": address.number,
            "number_addition": address.number_addition,
            "postcode": address.postcode,
            "city": address.city,
            "country": address.country,
        }
    if isinstance(address, InternationalAddress):
        street = " ".join(line for line in (address.line1, address.line2) if line) or None
        return {
            "street": street,
            "number": None,
            "number_addition": None,
            "postcode": None,
            "city": address.city,
            "country": address.country,
        }
    return {
        "street": address.street,
        "number": address.house_number.main,
        "number_addition": address.number_addition,
        "postcode": address.postcode,
        "city": address.city,
        "country": None,
    }


def _sale_fields(sale: SaleTerms | None) -> dict[str, Any]:
    if sale is None:
        return {"buy": False, "buy_price": None}
    prefix, suffix = sale_display(sale.prefix, sale.condition)
    return {
        "buy": True,
        "buy_price": sale.price,
        "buy_prefix": prefix,
        "buy_suffix": suffix,
    }


def _rental_fields(rental: RentalTerms | None) -> dict[str, Any]:
    if rental is None:
        return {"rent": False, "rent_price": None}
    prefix, suffix = rental_display(rental.condition)
    return {
        "rent": True,
        "rent_price": rental.price,
        "rent_prefix": prefix,
        "rent_suffix": suffix,
    }
