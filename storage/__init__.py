"""
Storage package: TTL cache, member directory lookups and retry policy.
"""
