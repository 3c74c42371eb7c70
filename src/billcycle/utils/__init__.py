"""
Utils package.

- All dates are timezone-aware UTC datetimes in memory and epoch
  milliseconds when persisted.
- All identifiers are UUIDs.
- All models that are persisted implement `to_dynamodb_item()` and
  `from_dynamodb_item()`; record store adapters never hand-build items.
"""
