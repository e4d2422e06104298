"""
Persistence package for the Catalog Service.

PostgreSQL-backed record stores: a read-only view for the replica and a
writer for the authority. Each store owns one shared connection pool;
queries hold a connection only for their own duration.
"""
