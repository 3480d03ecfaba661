"""
Top‑level package for the Subscriptions API.

This file makes ``subscriptions_api`` a Python package so that
modules within ``app`` can be imported using fully qualified names
like ``subscriptions_api.app.main``.

The package provides no public exports; all functionality lives in
submodules under ``app``.
"""

__all__ = []
