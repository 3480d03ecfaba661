"""
Service layer.

Services orchestrate validation, error translation and aggregation on
top of the repositories.  HTTP handlers talk only to services.
"""
