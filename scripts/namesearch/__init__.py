"""Name registry search indexer.

Enumerates registered names from a directory service, resolves each name's
profile in throttled batches, stores sanitized namespace records in
PostgreSQL JSONB collections, and derives search profiles plus deduplicated
name, twitter-handle and username caches.
"""
