"""Typed variants of the raw listing feed.

The upstream feed delivers each ``<Object>`` as a loosely-typed mapping whose
shape depends on the listing category.  This module resolves a raw mapping
**once** into exactly one tagged variant:

+----------------------+------------------+---------------------------------+
| Variant              | Top-level marker | Address shape                   |
+======================+==================+=================================+
| ResidentialObject    | ``Wonen``        | ``Nederlands`` or               |
|                      |                  | ``Internationaal``              |
+----------------------+------------------+---------------------------------+
| CommercialObject     | ``Gebouw``       | flat, ``Huisnummer.Hoofdnummer``|
+----------------------+------------------+---------------------------------+
| OtherObject          | neither          | none                            |
+----------------------+------------------+---------------------------------+

Each variant only carries the fields valid for its shape, so code past this
boundary never checks for the presence of keys.  Field aliases are the
upstream (Dutch) element names; attribute names are English.

A record missing a block its category requires raises
:class:`~propertyfeed.core.exceptions.MalformedListingError`.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from propertyfeed.core.exceptions import MalformedListingError

__all__ = [
    "DomesticAddress",
    "InternationalAddress",
    "CommercialAddress",
    "SaleTerms",
    "RentalTerms",
    "ResidentialObject",
    "CommercialObject",
    "OtherObject",
    "FeedObject",
    "resolve_variant",
]


class _FeedBlock(BaseModel):
    """Base for every upstream block: aliased, immutable, lenient on extras."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        frozen=True,
        coerce_numbers_to_str=True,
    )


def _as_block(value: Any) -> dict[str, Any]:
    """Treat empty XML elements (``""`` / ``None``) as empty blocks."""
    if isinstance(value, Mapping):
        return dict(value)
    return {}


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------


class DomesticAddress(_FeedBlock):
    kind: Literal["domestic"] = "domestic"
    street: str | None = Field(None, alias="Straatnaam")
    number: str | None = Field(None, alias="Huisnummer")
    number_addition: str | None = Field(None, alias="HuisnummerToevoeging")
    postcode: str | None = Field(None, alias="Postcode")
    city: str | None = Field(None, alias="Woonplaats")
    country: str | None = Field(None, alias="Land")


class InternationalAddress(_FeedBlock):
    kind: Literal["international"] = "international"
    line1: str | None = Field(None, alias="Adresregel1")
    line2: str | None = Field(None, alias="Adresregel2")
    city: str | None = Field(None, alias="Woonplaats")
    country: str | None = Field(None, alias="Land")


class _HouseNumber(_FeedBlock):
    main: str | None = Field(None, alias="Hoofdnummer")


class CommercialAddress(_FeedBlock):
    """Commercial addresses carry no country upstream."""

    kind: Literal["commercial"] = "commercial"
    street: str | None = Field(None, alias="Straatnaam")
    house_number: _HouseNumber = Field(..., alias="Huisnummer")
    number_addition: str | None = Field(None, alias="HuisnummerToevoeging")
    postcode: str | None = Field(None, alias="Postcode")
    city: str | None = Field(None, alias="Woonplaats")


class _ResidentialAddressBlock(_FeedBlock):
    domestic: DomesticAddress | None = Field(None, alias="Nederlands")
    international: InternationalAddress | None = Field(None, alias="Internationaal")

    @model_validator(mode="after")
    def _one_form_present(self) -> _ResidentialAddressBlock:
        if self.domestic is None and self.international is None:
            raise ValueError("address has neither 'Nederlands' nor 'Internationaal' form")
        return self

    @property
    def resolved(self) -> DomesticAddress | InternationalAddress:
        """The domestic form wins when both are present."""
        return self.domestic if self.domestic is not None else self.international  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


class _PriceSpecification(_FeedBlock):
    price: float | None = Field(None, alias="Prijs")


class SaleTerms(_FeedBlock):
    """Category-neutral view of a ``Koop`` block.

    Subclasses decide where the price lives; the base never carries one.
    """

    prefix: str | None = Field(None, alias="Prijsvoorvoegsel")
    condition: str | None = Field(None, alias="KoopConditie")

    @property
    def price(self) -> float | None:
        return None


class RentalTerms(_FeedBlock):
    """Category-neutral view of a ``Huur`` block."""

    condition: str | None = Field(None, alias="HuurConditie")

    @property
    def price(self) -> float | None:
        return None


class _ResidentialSale(SaleTerms):
    asking_price: float | None = Field(None, alias="Koopprijs")

    @property
    def price(self) -> float | None:
        return self.asking_price


class _ResidentialRental(RentalTerms):
    rental_price: float | None = Field(None, alias="Huurprijs")

    @property
    def price(self) -> float | None:
        return self.rental_price


class _CommercialSale(SaleTerms):
    specification: _PriceSpecification = Field(..., alias="PrijsSpecificatie")

    @property
    def price(self) -> float | None:
        return self.specification.price


class _CommercialRental(RentalTerms):
    specification: _PriceSpecification = Field(..., alias="PrijsSpecificatie")

    @property
    def price(self) -> float | None:
        return self.specification.price


# ---------------------------------------------------------------------------
# Status blocks
# ---------------------------------------------------------------------------


class _AvailabilityStatus(_FeedBlock):
    status: str | None = Field(None, alias="Status")


class _BuildingStatus(_FeedBlock):
    status: str | None = Field(None, alias="StatusType")


# ---------------------------------------------------------------------------
# Detail blocks per category
# ---------------------------------------------------------------------------


class _Details(_FeedBlock):
    last_changed: date = Field(..., alias="DatumWijziging")

    @field_validator("sale", "rental", mode="before", check_fields=False)
    @classmethod
    def _empty_element_is_block(cls, v: Any) -> Any:
        # <Koop/> arrives as "" and still marks the listing for sale.
        if v == "":
            return {}
        return v


class _ResidentialDetails(_Details):
    address: _ResidentialAddressBlock = Field(..., alias="Adres")
    availability: _AvailabilityStatus = Field(..., alias="StatusBeschikbaarheid")
    sale: _ResidentialSale | None = Field(None, alias="Koop")
    rental: _ResidentialRental | None = Field(None, alias="Huur")


class _CommercialDetails(_Details):
    address: CommercialAddress = Field(..., alias="Adres")
    building_status: _BuildingStatus = Field(..., alias="Status")
    sale: _CommercialSale | None = Field(None, alias="Koop")
    rental: _CommercialRental | None = Field(None, alias="Huur")


class _OtherDetails(_Details):
    sale: SaleTerms | None = Field(None, alias="Koop")
    rental: RentalTerms | None = Field(None, alias="Huur")


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


class _FeedObject(_FeedBlock):
    system_id: str = Field(..., alias="ObjectSystemID", min_length=1)
    object_code: str | None = Field(None, alias="ObjectCode")


class ResidentialObject(_FeedObject):
    """A ``Wonen`` object: house, apartment or other dwelling."""

    kind: Literal["residential"] = "residential"
    marker: dict[str, Any] = Field(default_factory=dict, alias="Wonen")
    details: _ResidentialDetails = Field(..., alias="ObjectDetails")

    @field_validator("marker", mode="before")
    @classmethod
    def _marker_as_block(cls, v: Any) -> dict[str, Any]:
        return _as_block(v)

    @property
    def property_type(self) -> str:
        if "Woonhuis" in self.marker:
            return "house"
        if "Appartement" in self.marker:
            return "apartment"
        return "other"

    @property
    def address(self) -> DomesticAddress | InternationalAddress:
        return self.details.address.resolved

    @property
    def status(self) -> str | None:
        return self.details.availability.status


class CommercialObject(_FeedObject):
    """A ``Gebouw`` object: retail space, business space or other building."""

    kind: Literal["commercial"] = "commercial"
    marker: dict[str, Any] = Field(default_factory=dict, alias="Gebouw")
    details: _CommercialDetails = Field(..., alias="ObjectDetails")

    @field_validator("marker", mode="before")
    @classmethod
    def _marker_as_block(cls, v: Any) -> dict[str, Any]:
        return _as_block(v)

    @property
    def property_type(self) -> str:
        if "Winkelruimte" in self.marker:
            return "retail-space"
        if "Bedrijfsruimte" in self.marker:
            return "business-space"
        return "other"

    @property
    def address(self) -> CommercialAddress:
        return self.details.address

    @property
    def status(self) -> str | None:
        return self.details.building_status.status


class OtherObject(_FeedObject):
    """Any object of neither category; carries no address or status."""

    kind: Literal["other"] = "other"
    details: _OtherDetails = Field(..., alias="ObjectDetails")


FeedObject = ResidentialObject | CommercialObject | OtherObject


def resolve_variant(raw: Mapping[str, Any]) -> FeedObject:
    """Resolve *raw* into its tagged variant.

    Args:
        raw: One feed object as a mapping (``<Object>`` converted to JSON).

    Returns:
        The :class:`ResidentialObject`, :class:`CommercialObject` or
        :class:`OtherObject` matching the record's top-level marker.

    Raises:
        MalformedListingError: If *raw* is not a mapping, or a block its
            category requires is missing or has the wrong shape.
    """
    if not isinstance(raw, Mapping):
        raise MalformedListingError(None, f"expected a mapping, got {type(raw).__name__}")

    variant: type[_FeedObject]
    if "Wonen" in raw:
        variant = ResidentialObject
    elif "Gebouw" in raw:
        variant = CommercialObject
    else:
        variant = OtherObject

    try:
        return variant.model_validate(dict(raw))  # type: ignore[return-value]
    except ValidationError as exc:
        system_id = raw.get("ObjectSystemID")
        raise MalformedListingError(
            str(system_id) if system_id is not None else None,
            _describe(exc),
        ) from exc


def _describe(exc: ValidationError) -> str:
    """Condense a pydantic error list into one line of ``path: reason`` items."""
    parts = []
    for err in exc.errors():
        path = ".".join(str(p) for p in err["loc"])
        parts.append(f"{path}: {err['msg']}")
    return "; ".join(parts)
