# locationsvc

A resolver for GraphQL location operations that arrive as AppSync events. It
stores locations in a DynamoDB table, one item per location. The partition key
`PK` holds the account id. The sort key `SK` holds a generated location id, which
is a UUID.

The package has no runtime dependencies.

## Location kinds (`locationsvc.models`)

Every location belongs to an account and is one of the three kinds listed in
`LocationType`:

- `AddressLocation`: a mailing address (`Address`). The street address, city and
  postal code are required. The country is required and must be exactly two
  characters long.
- `CoordinatesLocation`: GPS coordinates (`Coordinates`). Latitude must lie in
  [-90, 90] and longitude in [-180, 180]. Altitude and accuracy are optional.
  Accuracy may not be negative.
- `ShopLocation`: a business (`Shop`). It needs a name, a contact id and a valid
  address.

Any location may also carry free-form `extendedAttributes`.

`unmarshal_location` takes JSON text and `location_from_dict` takes a decoded
dict. Each returns the location class that matches the data's `locationType`. If
the type is unknown or the data is malformed, they raise `LocationError`. A
model's `validate()` raises `LocationError` with a message that names the field
at fault, for example `"city is required"`. `to_dict()` gives the camelCase JSON
form and leaves out empty optional fields.

```python
from locationsvc.models import unmarshal_location

location = unmarshal_location(
    '{"accountId": "acc-12345", "locationType": "coordinates",'
    ' "coordinates": {"latitude": 40.7128, "longitude": -74.006}}'
)
location.validate()
```

## Storage (`locationsvc.repository`)

`DynamoDBRepository(client, table_name)` works with any object that has the
methods described by the `DynamoDBClient` protocol: `put_item`, `get_item`,
`delete_item` and `query`. Each method takes one request dict in DynamoDB's
low-level form (`TableName`, `Item`, `Key`, attribute values such as
`{"S": "x"}`) and returns a response dict. A client reports a failed condition
expression by raising `ConditionalCheckFailedError`.

The repository has these methods:

- `create(location)`: validates the location, stores it under a new UUID and
  returns that id. It fails with `"location already exists"` if the id is taken.
- `get(account_id, location_id)`: returns the stored location. It fails with
  `"location not found"` if there is no such item.
- `update(location, location_id)`: validates the location and replaces the item.
  The item must exist and belong to the location's account.
- `delete(account_id, location_id)`: removes the item. The item must exist and
  belong to the account.
- `list(account_id, options=None)`: returns a `ListResult` holding one page of
  the account's locations in ascending id order, their ids, and `next_cursor`.
  The page size is 20 unless `ListOptions.limit` sets another. To read the next
  page, pass the cursor back in through `ListOptions.cursor`.

Every failure raises `RepositoryError`. The repository also exposes these
helpers:

- `LocationRecord`: the stored form of a location.
- `PaginationCursor`: the cursor, encoded as base64 JSON.
- `marshal_value`, `unmarshal_value`, `marshal_item` and `unmarshal_item`:
  convert between Python values and DynamoDB attribute values.

## Handling AppSync events (`locationsvc.handler`)

`AppSyncHandler(repo).handle(event)` chooses an operation from `event.field`:

| field | result |
| --- | --- |
| `createLocation`, `createAddressLocation`, `createCoordinatesLocation`, `createShopLocation` | new location id |
| `getLocation` | location dict with `locationId` and `__typename` |
| `updateLocation`, `updateAddressLocation`, `updateCoordinatesLocation`, `updateShopLocation` | `True` |
| `deleteLocation` | `True` |
| `listLocations` | `ListLocationsResponse` with `locations` and `next_cursor` |

The event's arguments may be a dict or JSON text. An unknown field, bad
arguments or a repository failure all raise `HandlerError`.
`location_to_response` builds the dict that is returned for a single location.

```python
from locationsvc.handler import AppSyncEvent, AppSyncHandler
from locationsvc.repository import DynamoDBRepository

repo = DynamoDBRepository(client, "locations")
handler = AppSyncHandler(repo)

event = AppSyncEvent.from_dict({
    "field": "getLocation",
    "arguments": {"accountId": "acc-12345", "locationId": "loc-001"},
})
location = handler.handle(event)
```

## Function entry point (`locationsvc.main`)

A function runtime calls `lambda_handler(event, context, client_factory)` once
for each invocation. It works in this order:

1. It reads the table name from the `DYNAMODB_TABLE_NAME` environment variable.
2. It calls `client_factory()` to get a DynamoDB client.
3. It resolves the event through an `AppSyncHandler`.

If the variable is unset or empty, if there is no factory, or if the factory
fails, it raises `ConfigurationError`. A `ListLocationsResponse` is returned as
its dict form. `initialize_handler` does the setup on its own, and
`get_env_var(key, default)` reads a variable with a fallback.

## What the package does not do

The package contains no AWS SDK and no DynamoDB client of its own. You supply the
client through `client_factory`, or directly to `DynamoDBRepository`. The
package offers no command-line tool and no server. It is meant to be called by a
function runtime or by your own code.