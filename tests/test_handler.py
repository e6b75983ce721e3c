import json

import pytest

from locationsvc.handler import (
    AppSyncEvent,
    AppSyncHandler,
    HandlerError,
    ListLocationsResponse,
    location_to_response,
)
from locationsvc.models import (
    Address,
    AddressLocation,
    Coordinates,
    CoordinatesLocation,
    LocationType,
    Shop,
    ShopLocation,
)
from locationsvc.repository import (
    ListOptions,
    ListResult,
    Repository,
    RepositoryError,
)


class FakeRepository(Repository):
    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result
        self.error = error

    def _respond(self, name, *args):
        self.calls.append((name, args))
        if self.error is not None:
            raise self.error
        return self.result

    def create(self, location):
        return self._respond("create", location)

    def get(self, account_id, location_id):
        return self._respond("get", account_id, location_id)

    def update(self, location, location_id):
        return self._respond("update", location, location_id)

    def delete(self, account_id, location_id):
        return self._respond("delete", account_id, location_id)

    def list(self, account_id, options=None):
        return self._respond("list", account_id, options)


ADDRESS_INPUT = {
    "accountId": "acc-12345",
    "locationType": "address",
    "address": {
        "streetAddress": "123 Main St",
        "city": "Springfield",
        "postalCode": "12345",
        "country": "US",
    },
}


def address_location(street="123 Main St"):
    return AddressLocation(
        account_id="acc-12345",
        location_type=LocationType.ADDRESS,
        address=Address(
            street_address=street,
            city="Springfield",
            postal_code="12345",
            country="US",
        ),
    )


def coordinates_location():
    return CoordinatesLocation(
        account_id="acc-12345",
        location_type=LocationType.COORDINATES,
        coordinates=Coordinates(latitude=40.7128, longitude=-74.0060),
    )


def test_create_success():
    repo = FakeRepository(result="test-location-id-123")
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(field="createLocation", arguments={"input": ADDRESS_INPUT})
    assert handler.handle(event) == "test-location-id-123"
    ((name, (location,)),) = repo.calls
    assert name == "create"
    assert isinstance(location, AddressLocation)
    assert location.account_id == "acc-12345"


def test_create_accepts_json_text_arguments():
    repo = FakeRepository(result="id-1")
    handler = AppSyncHandler(repo)
    text = json.dumps({"input": ADDRESS_INPUT})
    event = AppSyncEvent(field="createAddressLocation", arguments=text)
    assert handler.handle(event) == "id-1"


def test_create_invalid_location_data():
    repo = FakeRepository()
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(
        field="createLocation", arguments={"input": {"invalid": "data"}}
    )
    with pytest.raises(HandlerError, match="failed to unmarshal location"):
        handler.handle(event)
    assert repo.calls == []


def test_create_repository_error():
    repo = FakeRepository(error=RepositoryError("database error"))
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(field="createLocation", arguments={"input": ADDRESS_INPUT})
    with pytest.raises(HandlerError, match="failed to create location: database error"):
        handler.handle(event)


def test_get_success():
    repo = FakeRepository(result=address_location())
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(
        field="getLocation",
        arguments={"accountId": "acc-12345", "locationId": "loc-001"},
    )
    result = handler.handle(event)
    assert repo.calls == [("get", ("acc-12345", "loc-001"))]
    assert result["accountId"] == "acc-12345"
    assert result["locationId"] == "loc-001"
    assert result["__typename"] == "AddressLocation"


def test_get_not_found():
    repo = FakeRepository(error=RepositoryError("location not found"))
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(
        field="getLocation",
        arguments={"accountId": "acc-12345", "locationId": "loc-001"},
    )
    with pytest.raises(HandlerError, match="failed to get location"):
        handler.handle(event)


def test_get_missing_arguments_use_empty_ids():
    repo = FakeRepository(error=RepositoryError("location not found"))
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(field="getLocation", arguments={"invalid": "arguments"})
    with pytest.raises(HandlerError, match="failed to get location"):
        handler.handle(event)
    assert repo.calls == [("get", ("", ""))]


def test_get_rejects_malformed_arguments():
    handler = AppSyncHandler(FakeRepository())
    event = AppSyncEvent(field="getLocation", arguments="{not json")
    with pytest.raises(HandlerError, match="failed to unmarshal arguments"):
        handler.handle(event)


def test_update_success():
    repo = FakeRepository()
    handler = AppSyncHandler(repo)
    updated = dict(ADDRESS_INPUT, address=dict(ADDRESS_INPUT["address"], streetAddress="456 Oak Ave"))
    event = AppSyncEvent(
        field="updateLocation",
        arguments={"locationId": "loc-001", "input": updated},
    )
    assert handler.handle(event) is True
    ((name, (location, location_id)),) = repo.calls
    assert name == "update"
    assert location_id == "loc-001"
    assert location.address.street_address == "456 Oak Ave"


def test_update_non_existent_location():
    repo = FakeRepository(error=RepositoryError("location not found"))
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(
        field="updateShopLocation",
        arguments={"locationId": "loc-001", "input": ADDRESS_INPUT},
    )
    with pytest.raises(HandlerError, match="failed to update location"):
        handler.handle(event)


def test_delete_success():
    repo = FakeRepository()
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(
        field="deleteLocation",
        arguments={"accountId": "acc-12345", "locationId": "loc-001"},
    )
    assert handler.handle(event) is True
    assert repo.calls == [("delete", ("acc-12345", "loc-001"))]


def test_delete_non_existent_location():
    repo = FakeRepository(error=RepositoryError("location not found"))
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(
        field="deleteLocation",
        arguments={"accountId": "acc-12345", "locationId": "loc-001"},
    )
    with pytest.raises(HandlerError, match="failed to delete location"):
        handler.handle(event)


def test_list_success():
    repo = FakeRepository(
        result=ListResult(
            locations=[address_location(), coordinates_location()],
            location_ids=["loc-123", "loc-456"],
        )
    )
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(field="listLocations", arguments={"accountId": "acc-12345"})
    response = handler.handle(event)
    assert isinstance(response, ListLocationsResponse)
    assert len(response.locations) == 2
    assert response.next_cursor is None
    assert [loc["locationId"] for loc in response.locations] == ["loc-123", "loc-456"]
    assert [loc["__typename"] for loc in response.locations] == [
        "AddressLocation",
        "CoordinatesLocation",
    ]
    ((name, (account_id, options)),) = repo.calls
    assert name == "list"
    assert account_id == "acc-12345"
    assert options == ListOptions(limit=None, cursor=None)


def test_list_passes_limit_and_cursor():
    repo = FakeRepository(result=ListResult(next_cursor="abc"))
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(
        field="listLocations",
        arguments={"accountId": "acc-12345", "limit": 5, "cursor": "xyz"},
    )
    response = handler.handle(event)
    assert response.next_cursor == "abc"
    assert repo.calls[0][1][1] == ListOptions(limit=5, cursor="xyz")


def test_list_rejects_non_integer_limit():
    handler = AppSyncHandler(FakeRepository(result=ListResult()))
    event = AppSyncEvent(
        field="listLocations", arguments={"accountId": "acc-12345", "limit": "ten"}
    )
    with pytest.raises(HandlerError, match="failed to unmarshal arguments"):
        handler.handle(event)


def test_list_empty():
    repo = FakeRepository(result=ListResult())
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(field="listLocations", arguments={"accountId": "acc-12345"})
    response = handler.handle(event)
    assert response.locations == []
    assert response.next_cursor is None


def test_list_repository_error():
    repo = FakeRepository(error=RepositoryError("database error"))
    handler = AppSyncHandler(repo)
    event = AppSyncEvent(field="listLocations", arguments={"accountId": "acc-12345"})
    with pytest.raises(HandlerError, match="failed to list locations"):
        handler.handle(event)


def test_unknown_field():
    handler = AppSyncHandler(FakeRepository())
    event = AppSyncEvent(field="unknownOperation", arguments={})
    with pytest.raises(HandlerError, match="unknown field: unknownOperation"):
        handler.handle(event)


def test_location_to_response_address():
    assert location_to_response(address_location(), "loc-001") == {
        "accountId": "acc-12345",
        "locationType": "address",
        "address": {
            "streetAddress": "123 Main St",
            "city": "Springfield",
            "postalCode": "12345",
            "country": "US",
        },
        "locationId": "loc-001",
        "__typename": "AddressLocation",
    }


def test_location_to_response_shop():
    shop = ShopLocation(
        account_id="acc-54321",
        location_type=LocationType.SHOP,
        shop=Shop(
            name="Coffee Shop",
            contact_id="contact-1",
            address=Address(
                street_address="1 Main St",
                city="Springfield",
                postal_code="12345",
                country="US",
            ),
        ),
        extended_attributes={"verified": True},
    )
    result = location_to_response(shop, "loc-9")
    assert result["__typename"] == "ShopLocation"
    assert result["shop"]["name"] == "Coffee Shop"
    assert result["extendedAttributes"] == {"verified": True}


def test_list_response_to_dict():
    assert ListLocationsResponse().to_dict() == {"locations": []}
    assert ListLocationsResponse(locations=[{"a": 1}], next_cursor="c").to_dict() == {
        "locations": [{"a": 1}],
        "nextCursor": "c",
    }


def test_event_from_dict():
    event = AppSyncEvent.from_dict(
        {
            "field": "getLocation",
            "arguments": {"accountId": "a"},
            "identity": {"username": "someone"},
            "request": {"headers": {"x": "y"}},
        }
    )
    assert event.field == "getLocation"
    assert event.arguments == {"accountId": "a"}
    assert event.identity == {"username": "someone"}
    assert event.request == {"headers": {"x": "y"}}


def test_event_from_dict_rejects_non_object():
    with pytest.raises(HandlerError):
        AppSyncEvent.from_dict([1, 2])