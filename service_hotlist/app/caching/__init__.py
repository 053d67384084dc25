"""
Hotlist caching package.

TTL key/value stores (in-process and Redis) shared by every source and
helper service. Entries are replaced wholesale and expire lazily.
"""
