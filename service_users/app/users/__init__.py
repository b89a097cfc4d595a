"""
User domain package for Users Service.

- models: record, filter, pagination and request/response models.
- paging: clamping rules for page, page size and sort.
- repository: cache-aside coordination between store and cache.
- service: operations used by the HTTP layer.
"""
