"""
Top-level package for the Home Services API.

The marketplace backend lives in the ``app`` subpackage; import the
ASGI application as ``home_services_api.app.main:app``.  Nothing is
re-exported here so that importing the package stays side-effect free
(tests repoint the database before the app is created).
"""

__all__ = []
