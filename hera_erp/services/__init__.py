"""
Business logic over the universal schema.

Functions here take plain Python values (dicts, lists, dataclasses) and do no
I/O, so routers own the queries and these modules own the rules.
"""
