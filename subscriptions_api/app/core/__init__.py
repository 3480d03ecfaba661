"""Configuration, logging, middleware and database plumbing."""
