"""
Persistence layer.

A repository exposes a capability interface (add/update/remove/find)
over one entity.  Soft‑deleted rows are excluded by every query.
"""
