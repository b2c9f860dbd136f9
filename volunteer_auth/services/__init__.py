"""Service layer.

Packages
--------
- ``volunteer_auth.services._shared``
    * :class:`~volunteer_auth.services._shared.base.BaseService`.
    * Framework-agnostic errors (``errors``) and persistence/crypto ports (``ports``).

- ``volunteer_auth.services.auth``
    * :class:`~volunteer_auth.services.auth.service.SessionManager`: register,
      login, refresh rotation, logout and access token validation.
    * DTOs (``dto``) and :class:`~volunteer_auth.services.auth.settings.AuthSettings`.

Nothing is re-exported here; the HTTP error layer imports the service errors
and the services import the HTTP layer lazily, so eager re-exports would cycle.
"""
