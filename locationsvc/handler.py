"""AppSync resolver for location operations."""

from __future__ import annotations

import dataclasses
import json
from typing import Any, Mapping

from .models import Location, LocationError, LocationType, location_from_dict
from .repository import ListOptions, Repository

_CREATE_FIELDS = frozenset(
    {
        "createLocation",
        "createAddressLocation",
        "createCoordinatesLocation",
        "createShopLocation",
    }
)
_UPDATE_FIELDS = frozenset(
    {
        "updateLocation",
        "updateAddressLocation",
        "updateCoordinatesLocation",
        "updateShopLocation",
    }
)

_TYPENAMES = {
    LocationType.ADDRESS: "AddressLocation",
    LocationType.COORDINATES: "CoordinatesLocation",
    LocationType.SHOP: "ShopLocation",
}

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class HandlerError(Exception):
    """Raised when an AppSync event cannot be resolved."""


def _mapping(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise HandlerError(f"{what} must be a JSON object")
    return dict(value)


@dataclasses.dataclass
class AppSyncEvent:
    """An event sent by AppSync to a resolver."""

    field: str = ""
    arguments: Any = None
    source: Any = None
    identity: dict[str, Any] = dataclasses.field(default_factory=dict)
    request: dict[str, Any] = dataclasses.field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> AppSyncEvent:
        """Build an event from its decoded JSON form."""
        data = _mapping(data, "event")
        name = data.get("field")
        if name is None:
            name = ""
        if not isinstance(name, str):
            raise HandlerError("field must be a string")
        return cls(
            field=name,
            arguments=data.get("arguments"),
            source=data.get("source"),
            identity=_mapping(data.get("identity"), "identity"),
            request=_mapping(data.get("request"), "request"),
        )


@dataclasses.dataclass
class ListLocationsResponse:
    """One page of locations in response form, with the cursor for the next."""

    locations: list[dict[str, Any]] = dataclasses.field(default_factory=list)
    next_cursor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out an absent cursor."""
        result: dict[str, Any] = {"locations": [dict(loc) for loc in self.locations]}
        if self.next_cursor is not None:
            result["nextCursor"] = self.next_cursor
        return result


def location_to_response(location: Location, location_id: str) -> dict[str, Any]:
    """Return a location's JSON form with its id and GraphQL type name."""
    result = location.to_dict()
    result["locationId"] = location_id
    typename = _TYPENAMES.get(location.location_type)
    if typename is not None:
        result["__typename"] = typename
    return result


def _parse_arguments(arguments: Any) -> Mapping[str, Any]:
    if isinstance(arguments, (str, bytes, bytearray)):
        try:
            arguments = json.loads(arguments)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise HandlerError(f"failed to unmarshal arguments: {exc}") from exc
    if arguments is None:
        return {}
    if not isinstance(arguments, Mapping):
        raise HandlerError("failed to unmarshal arguments: expected a JSON object")
    return arguments


def _string_argument(args: Mapping[str, Any], key: str) -> str:
    value = args.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise HandlerError(f"failed to unmarshal arguments: {key} must be a string")
    return value


def _limit_argument(args: Mapping[str, Any]) -> int | None:
    value = args.get("limit")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise HandlerError("failed to unmarshal arguments: limit must be an integer")
    if not _INT32_MIN <= value <= _INT32_MAX:
        raise HandlerError("failed to unmarshal arguments: limit is out of range")
    return value


def _input_location(args: Mapping[str, Any]) -> Location:
    raw = args.get("input")
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise HandlerError(f"failed to unmarshal location: {exc}") from exc
    try:
        return location_from_dict(raw)
    except LocationError as exc:
        raise HandlerError(f"failed to unmarshal location: {exc}") from exc


class AppSyncHandler:
    """Resolves AppSync fields against a location repository."""

    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def handle(self, event: AppSyncEvent) -> Any:
        """Resolve the event's field and return its result."""
        name = event.field
        if name in _CREATE_FIELDS:
            return self._create(event.arguments)
        if name == "getLocation":
            return self._get(event.arguments)
        if name in _UPDATE_FIELDS:
            return self._update(event.arguments)
        if name == "deleteLocation":
            return self._delete(event.arguments)
        if name == "listLocations":
            return self._list(event.arguments)
        raise HandlerError(f"unknown field: {name}")

    def _create(self, arguments: Any) -> str:
        args = _parse_arguments(arguments)
        location = _input_location(args)
        try:
            return self.repo.create(location)
        except Exception as exc:
            raise HandlerError(f"failed to create location: {exc}") from exc

    def _get(self, arguments: Any) -> dict[str, Any]:
        args = _parse_arguments(arguments)
        account_id = _string_argument(args, "accountId")
        location_id = _string_argument(args, "locationId")
        try:
            location = self.repo.get(account_id, location_id)
        except Exception as exc:
            raise HandlerError(f"failed to get location: {exc}") from exc
        return location_to_response(location, location_id)

    def _update(self, arguments: Any) -> bool:
        args = _parse_arguments(arguments)
        location_id = _string_argument(args, "locationId")
        location = _input_location(args)
        try:
            self.repo.update(location, location_id)
        except Exception as exc:
            raise HandlerError(f"failed to update location: {exc}") from exc
        return True

    def _delete(self, arguments: Any) -> bool:
        args = _parse_arguments(arguments)
        account_id = _string_argument(args, "accountId")
        location_id = _string_argument(args, "locationId")
        try:
            self.repo.delete(account_id, location_id)
        except Exception as exc:
            raise HandlerError(f"failed to delete location: {exc}") from exc
        return True

    def _list(self, arguments: Any) -> ListLocationsResponse:
        args = _parse_arguments(arguments)
        account_id = _string_argument(args, "accountId")
        cursor = args.get("cursor")
        if cursor is not None and not isinstance(cursor, str):
            raise HandlerError("failed to unmarshal arguments: cursor must be a string")
        options = ListOptions(limit=_limit_argument(args), cursor=cursor)
        try:
            result = self.repo.list(account_id, options)
        except Exception as exc:
            raise HandlerError(f"failed to list locations: {exc}") from exc
        return ListLocationsResponse(
            locations=[
                location_to_response(location, location_id)
                for location, location_id in zip(result.locations, result.location_ids)
            ],
            next_cursor=result.next_cursor,
        )