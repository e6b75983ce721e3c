"""Location records: mailing addresses, GPS coordinates and shops."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Mapping


class LocationError(ValueError):
    """Raised when location data is malformed or fails validation."""


class LocationType(str, Enum):
    """The kind of a location record."""

    ADDRESS = "address"
    COORDINATES = "coordinates"
    SHOP = "shop"

    def __str__(self) -> str:
        return self.value


def _as_object(data: Any, what: str) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise LocationError(f"{what} must be a JSON object")
    return data


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise LocationError(f"{key} must be a string")
    return value


def _number(data: Mapping[str, Any], key: str) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise LocationError(f"{key} must be a number")
    return float(value)


def _extended_attributes(data: Mapping[str, Any]) -> dict[str, Any] | None:
    value = data.get("extendedAttributes")
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise LocationError("extendedAttributes must be a JSON object")
    return dict(value)


@dataclass
class Address:
    """A mailing address."""

    street_address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = ""
    street_address2: str = ""
    state_province: str = ""

    def validate(self) -> None:
        """Raise LocationError if a required field is missing or malformed."""
        if not self.street_address:
            raise LocationError("streetAddress is required")
        if not self.city:
            raise LocationError("city is required")
        if not self.postal_code:
            raise LocationError("postalCode is required")
        if not self.country:
            raise LocationError("country is required")
        if len(self.country) != 2:
            raise LocationError(
                "country must be a 2-character ISO 3166-1 alpha-2 code"
            )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out empty optional fields."""
        result: dict[str, Any] = {"streetAddress": self.street_address}
        if self.street_address2:
            result["streetAddress2"] = self.street_address2
        result["city"] = self.city
        if self.state_province:
            result["stateProvince"] = self.state_province
        result["postalCode"] = self.postal_code
        result["country"] = self.country
        return result

    @classmethod
    def from_dict(cls, data: Any) -> Address:
        """Build an address from its JSON form; missing fields become empty."""
        data = _as_object(data, "address")
        return cls(
            street_address=_string(data, "streetAddress"),
            city=_string(data, "city"),
            postal_code=_string(data, "postalCode"),
            country=_string(data, "country"),
            street_address2=_string(data, "streetAddress2"),
            state_province=_string(data, "stateProvince"),
        )


@dataclass
class Coordinates:
    """A GPS position."""

    latitude: float = 0.0
    longitude: float = 0.0
    altitude: float | None = None
    accuracy: float | None = None

    def validate(self) -> None:
        """Raise LocationError if a value is out of range."""
        if self.latitude < -90 or self.latitude > 90:
            raise LocationError(
                f"latitude must be between -90 and 90, got {self.latitude:f}"
            )
        if self.longitude < -180 or self.longitude > 180:
            raise LocationError(
                f"longitude must be between -180 and 180, got {self.longitude:f}"
            )
        if self.accuracy is not None and self.accuracy < 0:
            raise LocationError(
                f"accuracy must be non-negative, got {self.accuracy:f}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out unset optional values."""
        result: dict[str, Any] = {
            "latitude": self.latitude,
            "longitude": self.longitude,
        }
        if self.altitude is not None:
            result["altitude"] = self.altitude
        if self.accuracy is not None:
            result["accuracy"] = self.accuracy
        return result

    @classmethod
    def from_dict(cls, data: Any) -> Coordinates:
        """Build coordinates from their JSON form; missing values become zero."""
        data = _as_object(data, "coordinates")
        latitude = _number(data, "latitude")
        longitude = _number(data, "longitude")
        return cls(
            latitude=latitude if latitude is not None else 0.0,
            longitude=longitude if longitude is not None else 0.0,
            altitude=_number(data, "altitude"),
            accuracy=_number(data, "accuracy"),
        )


@dataclass
class Shop:
    """A shop or business with its address."""

    name: str = ""
    contact_id: str = ""
    address: Address = field(default_factory=Address)

    def validate(self) -> None:
        """Raise LocationError if a required field is missing or malformed."""
        if not self.name:
            raise LocationError("name is required")
        if not self.contact_id:
            raise LocationError("contactId is required")
        self.address.validate()

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form."""
        return {
            "name": self.name,
            "contactId": self.contact_id,
            "address": self.address.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> Shop:
        """Build a shop from its JSON form; missing fields become empty."""
        data = _as_object(data, "shop")
        return cls(
            name=_string(data, "name"),
            contact_id=_string(data, "contactId"),
            address=Address.from_dict(data.get("address")),
        )


@dataclass(kw_only=True)
class Location:
    """Fields shared by every kind of location."""

    kind: ClassVar[LocationType | None] = None

    account_id: str = ""
    location_type: LocationType
    extended_attributes: dict[str, Any] | None = None

    def validate(self) -> None:
        """Check the account and that the type matches this kind of location."""
        if not self.account_id:
            raise LocationError("accountId is required")
        if self.kind is None or self.location_type != self.kind:
            raise LocationError(
                f"invalid locationType for {type(self).__name__}: "
                f"{self.location_type}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the shared fields."""
        location_type = self.location_type
        if isinstance(location_type, LocationType):
            location_type = location_type.value
        result: dict[str, Any] = {
            "accountId": self.account_id,
            "locationType": location_type,
        }
        if self.extended_attributes:
            result["extendedAttributes"] = dict(self.extended_attributes)
        return result


@dataclass(kw_only=True)
class AddressLocation(Location):
    """A location given by mailing address."""

    kind: ClassVar[LocationType] = LocationType.ADDRESS

    location_type: LocationType = LocationType.ADDRESS
    address: Address = field(default_factory=Address)

    def validate(self) -> None:
        super().validate()
        self.address.validate()

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["address"] = self.address.to_dict()
        return result


@dataclass(kw_only=True)
class CoordinatesLocation(Location):
    """A location given by GPS coordinates."""

    kind: ClassVar[LocationType] = LocationType.COORDINATES

    location_type: LocationType = LocationType.COORDINATES
    coordinates: Coordinates = field(default_factory=Coordinates)

    def validate(self) -> None:
        super().validate()
        self.coordinates.validate()

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["coordinates"] = self.coordinates.to_dict()
        return result


@dataclass(kw_only=True)
class ShopLocation(Location):
    """A shop location with business details."""

    kind: ClassVar[LocationType] = LocationType.SHOP

    location_type: LocationType = LocationType.SHOP
    shop: Shop = field(default_factory=Shop)

    def validate(self) -> None:
        super().validate()
        self.shop.validate()

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["shop"] = self.shop.to_dict()
        return result


_VARIANTS: dict[LocationType, tuple[type[Location], str, Any]] = {
    LocationType.ADDRESS: (AddressLocation, "address", Address),
    LocationType.COORDINATES: (CoordinatesLocation, "coordinates", Coordinates),
    LocationType.SHOP: (ShopLocation, "shop", Shop),
}


def location_from_dict(data: Any) -> Location:
    """Build the right kind of location from decoded JSON, by its locationType."""
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise LocationError(
            "failed to unmarshal location type: expected a JSON object"
        )
    raw_type = data.get("locationType")
    if raw_type is None:
        raw_type = ""
    if not isinstance(raw_type, str):
        raise LocationError(
            "failed to unmarshal location type: locationType must be a string"
        )
    try:
        location_type = LocationType(raw_type)
    except ValueError:
        raise LocationError(f"unknown location type: {raw_type}") from None

    cls, key, detail = _VARIANTS[location_type]
    try:
        return cls(
            account_id=_string(data, "accountId"),
            location_type=location_type,
            extended_attributes=_extended_attributes(data),
            **{key: detail.from_dict(data.get(key))},
        )
    except LocationError as exc:
        raise LocationError(
            f"failed to unmarshal {location_type.value} location: {exc}"
        ) from exc


def unmarshal_location(data: str | bytes | bytearray) -> Location:
    """Parse a JSON document into the right kind of location."""
    try:
        decoded = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise LocationError(f"failed to unmarshal location type: {exc}") from exc
    return location_from_dict(decoded)