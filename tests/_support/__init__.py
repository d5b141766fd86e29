"""
Test support utilities for tinyorm tests.

Entities and migrations shared by several test modules live here rather
than in fixtures because tests construct them directly.
"""
