"""
# Database Package

Persistence layer of the Agency CMS, built on **Motor** (async MongoDB driver).

- **`manager`**: `DatabaseManager` owns the client, the bounded startup retry, index creation
  and the health ping.
- **`content_store`**: `ContentStore` wraps one manager with entity-level operations and maps
  pymongo failures onto `DuplicateKey` and `StorageUnavailable`.

There is no module-level singleton: the application, the migration CLI and the tests each
construct their own `ContentStore` and call `open()`/`close()` on it.

```python
store = ContentStore(settings)
await store.open()
post = await store.find_by_key(EntityKind.POSTS, "hello-world")
await store.close()
```
"""
