"""
Application package for the home-services marketplace.

The code is split by concern rather than kept in one module:

* ``core`` – settings, logging, sqlite migrations, security helpers and
  the error taxonomy shared by every domain;
* ``schemas`` – pydantic request/response models per domain;
* ``services`` – business logic (booking lifecycle, notifications,
  aggregation reports, users, skills and the service catalogue);
* ``api/v1`` – thin FastAPI routers that translate HTTP to service calls.
"""

from .main import app  # noqa: F401
