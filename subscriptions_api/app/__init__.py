"""
Application package initializer.

The service is organised in three layers: HTTP endpoints under
``api/v1/endpoints``, the application service in ``services`` and the
SQL repository in ``repositories``.  The domain entity lives in
``models`` and has no knowledge of storage or transport.
"""

from .main import app  # noqa: F401
