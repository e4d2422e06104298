"""
Cache package for the Catalog Service.

Provides the Redis connection with its lifecycle events, the availability
tracker that listens to them, and the cache-aside product cache used for
point reads. Entries are advisory and expire after a fixed TTL; writes
invalidate rather than update them.
"""
