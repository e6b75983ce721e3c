"""Storage of location records in a DynamoDB table."""

from __future__ import annotations

import base64
import binascii
import json
import math
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

from .models import (
    Address,
    AddressLocation,
    Coordinates,
    CoordinatesLocation,
    Location,
    LocationError,
    LocationType,
    Shop,
    ShopLocation,
)

DEFAULT_LIMIT = 20

_CREATE_CONDITION = "attribute_not_exists(PK) AND attribute_not_exists(SK)"
_OWNED_CONDITION = "attribute_exists(PK) AND attribute_exists(SK) AND PK = :accountId"


class RepositoryError(Exception):
    """Raised when a storage operation fails."""


class ConditionalCheckFailedError(Exception):
    """Raised by a client when a write's condition expression does not hold."""


class DynamoDBClient(Protocol):
    """The DynamoDB operations the repository needs.

    Requests and responses are dictionaries in the low-level wire form
    (``TableName``, ``Item``, ``Key``, attribute values such as ``{"S": "x"}``).
    """

    def put_item(self, request: dict[str, Any]) -> dict[str, Any]:
        """Write an item."""
        ...

    def get_item(self, request: dict[str, Any]) -> dict[str, Any]:
        """Read an item by key."""
        ...

    def delete_item(self, request: dict[str, Any]) -> dict[str, Any]:
        """Delete an item by key."""
        ...

    def query(self, request: dict[str, Any]) -> dict[str, Any]:
        """Query items by key condition."""
        ...


def _format_number(value: int | float | Decimal) -> str:
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"cannot store non-finite number {value!r}")
    if isinstance(value, Decimal) and not value.is_finite():
        raise ValueError(f"cannot store non-finite number {value}")
    return str(value) if not isinstance(value, float) else repr(value)


def _parse_number(text: str) -> int | float:
    try:
        return int(text)
    except ValueError:
        return float(text)


def marshal_value(value: Any) -> dict[str, Any]:
    """Convert a Python value to a DynamoDB attribute value."""
    if value is None:
        return {"NULL": True}
    if isinstance(value, bool):
        return {"BOOL": value}
    if isinstance(value, (int, float, Decimal)):
        return {"N": _format_number(value)}
    if isinstance(value, str):
        return {"S": value}
    if isinstance(value, (bytes, bytearray)):
        return {"B": bytes(value)}
    if isinstance(value, Mapping):
        return {"M": marshal_item(value)}
    if isinstance(value, (set, frozenset)):
        if all(isinstance(v, str) for v in value):
            return {"SS": sorted(value)}
        if all(
            isinstance(v, (int, float, Decimal)) and not isinstance(v, bool)
            for v in value
        ):
            return {"NS": [_format_number(v) for v in value]}
        if all(isinstance(v, (bytes, bytearray)) for v in value):
            return {"BS": [bytes(v) for v in value]}
        raise TypeError("a set must hold only strings, only numbers or only bytes")
    if isinstance(value, (list, tuple)):
        return {"L": [marshal_value(v) for v in value]}
    raise TypeError(f"cannot store value of type {type(value).__name__}")


def unmarshal_value(attribute: Mapping[str, Any]) -> Any:
    """Convert a DynamoDB attribute value to a Python value."""
    if not isinstance(attribute, Mapping) or len(attribute) != 1:
        raise ValueError(f"malformed attribute value: {attribute!r}")
    ((tag, payload),) = attribute.items()
    if tag == "S":
        return payload
    if tag == "N":
        return _parse_number(payload)
    if tag == "BOOL":
        return bool(payload)
    if tag == "NULL":
        return None
    if tag == "B":
        return bytes(payload)
    if tag == "M":
        return unmarshal_item(payload)
    if tag == "L":
        return [unmarshal_value(v) for v in payload]
    if tag == "SS":
        return set(payload)
    if tag == "NS":
        return {_parse_number(v) for v in payload}
    if tag == "BS":
        return {bytes(v) for v in payload}
    raise ValueError(f"unknown attribute value type: {tag}")


def marshal_item(item: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Convert a mapping of Python values to a DynamoDB item."""
    return {str(key): marshal_value(value) for key, value in item.items()}


def unmarshal_item(item: Mapping[str, Mapping[str, Any]]) -> dict[str, Any]:
    """Convert a DynamoDB item to a dictionary of Python values."""
    return {key: unmarshal_value(value) for key, value in item.items()}


@dataclass
class ListOptions:
    """Paging options for listing locations."""

    limit: int | None = None
    cursor: str | None = None


@dataclass
class ListResult:
    """One page of locations, with their ids in the same order."""

    locations: list[Location] = field(default_factory=list)
    location_ids: list[str] = field(default_factory=list)
    next_cursor: str | None = None


@dataclass
class PaginationCursor:
    """The key of the last item of a page: account id and location id."""

    pk: str = ""
    sk: str = ""

    def encode(self) -> str:
        """Return the cursor as base64-encoded JSON."""
        data = json.dumps({"pk": self.pk, "sk": self.sk}, separators=(",", ":"))
        return base64.b64encode(data.encode("utf-8")).decode("ascii")

    @classmethod
    def decode(cls, text: str) -> PaginationCursor:
        """Parse a cursor produced by encode."""
        try:
            data = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise RepositoryError(f"failed to decode cursor: {exc}") from exc
        try:
            decoded = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise RepositoryError(f"failed to unmarshal cursor: {exc}") from exc
        if not isinstance(decoded, dict):
            raise RepositoryError("failed to unmarshal cursor: expected a JSON object")
        pk = decoded.get("pk") or ""
        sk = decoded.get("sk") or ""
        if not isinstance(pk, str) or not isinstance(sk, str):
            raise RepositoryError("failed to unmarshal cursor: keys must be strings")
        return cls(pk=pk, sk=sk)

    def to_key(self) -> dict[str, dict[str, str]]:
        """Return the cursor as a DynamoDB start key."""
        return {"PK": {"S": self.pk}, "SK": {"S": self.sk}}

    @classmethod
    def from_key(cls, key: Mapping[str, Mapping[str, Any]]) -> PaginationCursor:
        """Build a cursor from a DynamoDB last-evaluated key."""

        def string_part(name: str) -> str:
            value = key.get(name)
            if isinstance(value, Mapping) and isinstance(value.get("S"), str):
                return value["S"]
            return ""

        return cls(pk=string_part("PK"), sk=string_part("SK"))


@dataclass
class LocationRecord:
    """A location as stored: account id as partition key, location id as sort key."""

    pk: str
    sk: str
    location_type: LocationType | str
    extended_attributes: dict[str, Any] | None = None
    address: Address | None = None
    coordinates: Coordinates | None = None
    shop: Shop | None = None

    @classmethod
    def from_location(cls, location: Location, location_id: str) -> LocationRecord:
        """Build the stored form of a location under the given id."""
        record = cls(
            pk=location.account_id,
            sk=location_id,
            location_type=location.location_type,
            extended_attributes=location.extended_attributes,
        )
        if isinstance(location, AddressLocation):
            record.address = location.address
        elif isinstance(location, CoordinatesLocation):
            record.coordinates = location.coordinates
        elif isinstance(location, ShopLocation):
            record.shop = location.shop
        else:
            raise RepositoryError("unknown location type")
        return record

    def to_location(self) -> Location:
        """Rebuild the location this record holds."""
        common = {
            "account_id": self.pk,
            "extended_attributes": self.extended_attributes,
        }
        if self.location_type == LocationType.ADDRESS:
            if self.address is None:
                raise RepositoryError("address is missing for address location type")
            return AddressLocation(
                location_type=LocationType.ADDRESS, address=self.address, **common
            )
        if self.location_type == LocationType.COORDINATES:
            if self.coordinates is None:
                raise RepositoryError(
                    "coordinates is missing for coordinates location type"
                )
            return CoordinatesLocation(
                location_type=LocationType.COORDINATES,
                coordinates=self.coordinates,
                **common,
            )
        if self.location_type == LocationType.SHOP:
            if self.shop is None:
                raise RepositoryError("shop is missing for shop location type")
            return ShopLocation(location_type=LocationType.SHOP, shop=self.shop, **common)
        raise RepositoryError(f"unknown location type: {self.location_type}")

    def to_item(self) -> dict[str, dict[str, Any]]:
        """Return the record as a DynamoDB item, leaving out empty parts."""
        location_type = self.location_type
        if isinstance(location_type, LocationType):
            location_type = location_type.value
        data: dict[str, Any] = {
            "PK": self.pk,
            "SK": self.sk,
            "locationType": location_type,
        }
        if self.extended_attributes:
            data["extendedAttributes"] = self.extended_attributes
        if self.address is not None:
            data["address"] = self.address.to_dict()
        if self.coordinates is not None:
            data["coordinates"] = self.coordinates.to_dict()
        if self.shop is not None:
            data["shop"] = self.shop.to_dict()
        return marshal_item(data)

    @classmethod
    def from_item(cls, item: Mapping[str, Mapping[str, Any]]) -> LocationRecord:
        """Parse a DynamoDB item into a record."""
        try:
            data = unmarshal_item(item)
        except (ValueError, TypeError) as exc:
            raise RepositoryError(str(exc)) from exc

        def text(key: str) -> str:
            value = data.get(key)
            if value is None:
                return ""
            if not isinstance(value, str):
                raise RepositoryError(f"{key} must be a string")
            return value

        raw_type = text("locationType")
        try:
            location_type: LocationType | str = LocationType(raw_type)
        except ValueError:
            location_type = raw_type

        extended = data.get("extendedAttributes")
        if extended is not None and not isinstance(extended, dict):
            raise RepositoryError("extendedAttributes must be a map")

        try:
            return cls(
                pk=text("PK"),
                sk=text("SK"),
                location_type=location_type,
                extended_attributes=extended,
                address=(
                    Address.from_dict(data["address"])
                    if data.get("address") is not None
                    else None
                ),
                coordinates=(
                    Coordinates.from_dict(data["coordinates"])
                    if data.get("coordinates") is not None
                    else None
                ),
                shop=Shop.from_dict(data["shop"]) if data.get("shop") is not None else None,
            )
        except LocationError as exc:
            raise RepositoryError(str(exc)) from exc


class Repository(ABC):
    """Storage operations for locations."""

    @abstractmethod
    def create(self, location: Location) -> str:
        """Store a new location and return its generated id."""

    @abstractmethod
    def get(self, account_id: str, location_id: str) -> Location:
        """Return a stored location."""

    @abstractmethod
    def update(self, location: Location, location_id: str) -> None:
        """Replace an existing location."""

    @abstractmethod
    def delete(self, account_id: str, location_id: str) -> None:
        """Remove an existing location."""

    @abstractmethod
    def list(self, account_id: str, options: ListOptions | None = None) -> ListResult:
        """Return one page of an account's locations."""


class DynamoDBRepository(Repository):
    """A repository backed by one DynamoDB table."""

    def __init__(self, client: DynamoDBClient, table_name: str) -> None:
        self.client = client
        self.table_name = table_name
        self.default_limit = DEFAULT_LIMIT

    @staticmethod
    def _key(account_id: str, location_id: str) -> dict[str, dict[str, str]]:
        return {"PK": {"S": account_id}, "SK": {"S": location_id}}

    @staticmethod
    def _validated_item(location: Location, location_id: str) -> dict[str, Any]:
        try:
            location.validate()
        except LocationError as exc:
            raise RepositoryError(f"validation failed: {exc}") from exc
        try:
            record = LocationRecord.from_location(location, location_id)
        except RepositoryError as exc:
            raise RepositoryError(
                f"failed to convert location to record: {exc}"
            ) from exc
        try:
            return record.to_item()
        except (TypeError, ValueError) as exc:
            raise RepositoryError(f"failed to marshal location: {exc}") from exc

    def create(self, location: Location) -> str:
        location_id = str(uuid.uuid4())
        item = self._validated_item(location, location_id)
        request = {
            "TableName": self.table_name,
            "Item": item,
            "ConditionExpression": _CREATE_CONDITION,
        }
        try:
            self.client.put_item(request)
        except ConditionalCheckFailedError as exc:
            raise RepositoryError("location already exists") from exc
        except Exception as exc:
            raise RepositoryError(f"failed to create location: {exc}") from exc
        return location_id

    def get(self, account_id: str, location_id: str) -> Location:
        request = {
            "TableName": self.table_name,
            "Key": self._key(account_id, location_id),
        }
        try:
            response = self.client.get_item(request)
        except Exception as exc:
            raise RepositoryError(f"failed to get location: {exc}") from exc
        item = (response or {}).get("Item")
        if item is None:
            raise RepositoryError("location not found")
        try:
            record = LocationRecord.from_item(item)
        except RepositoryError as exc:
            raise RepositoryError(f"failed to unmarshal location: {exc}") from exc
        return record.to_location()

    def update(self, location: Location, location_id: str) -> None:
        item = self._validated_item(location, location_id)
        request = {
            "TableName": self.table_name,
            "Item": item,
            "ConditionExpression": _OWNED_CONDITION,
            "ExpressionAttributeValues": {":accountId": {"S": location.account_id}},
        }
        try:
            self.client.put_item(request)
        except ConditionalCheckFailedError as exc:
            raise RepositoryError("location not found or access denied") from exc
        except Exception as exc:
            raise RepositoryError(f"failed to update location: {exc}") from exc

    def delete(self, account_id: str, location_id: str) -> None:
        request = {
            "TableName": self.table_name,
            "Key": self._key(account_id, location_id),
            "ConditionExpression": _OWNED_CONDITION,
            "ExpressionAttributeValues": {":accountId": {"S": account_id}},
        }
        try:
            self.client.delete_item(request)
        except ConditionalCheckFailedError as exc:
            raise RepositoryError("location not found or access denied") from exc
        except Exception as exc:
            raise RepositoryError(f"failed to delete location: {exc}") from exc

    def list(self, account_id: str, options: ListOptions | None = None) -> ListResult:
        limit = self.default_limit
        if options is not None and options.limit is not None:
            limit = options.limit

        request: dict[str, Any] = {
            "TableName": self.table_name,
            "KeyConditionExpression": "PK = :accountId",
            "ExpressionAttributeValues": {":accountId": {"S": account_id}},
            "Limit": limit,
            # Ascending by location id keeps paging deterministic.
            "ScanIndexForward": True,
        }
        if options is not None and options.cursor:
            try:
                cursor = PaginationCursor.decode(options.cursor)
            except RepositoryError as exc:
                raise RepositoryError(f"failed to decode cursor: {exc}") from exc
            request["ExclusiveStartKey"] = cursor.to_key()

        try:
            response = self.client.query(request) or {}
        except Exception as exc:
            raise RepositoryError(f"failed to list locations: {exc}") from exc

        result = ListResult()
        for item in response.get("Items") or []:
            try:
                record = LocationRecord.from_item(item)
            except RepositoryError as exc:
                raise RepositoryError(f"failed to unmarshal location: {exc}") from exc
            try:
                location = record.to_location()
            except RepositoryError as exc:
                raise RepositoryError(
                    f"failed to convert record to location: {exc}"
                ) from exc
            result.locations.append(location)
            result.location_ids.append(record.sk)

        last_key = response.get("LastEvaluatedKey")
        if last_key is not None:
            result.next_cursor = PaginationCursor.from_key(last_key).encode()
        return result