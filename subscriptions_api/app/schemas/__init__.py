"""
Pydantic schema definitions for API payloads.

Schemas are kept separate from the domain entity to decouple the API
representation from the persisted and validated model.
"""
