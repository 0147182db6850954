"""
Data access for the drama cache.

`DramaCacheStore` is the only component that talks to the database; it takes
and returns the typed records from `dramahub.repositories.records`.
"""
