"""Base service class for domain services."""


class Service:
    """Base class for all domain services.

    Services hold configuration and collaborators; entities reach them
    through the ``UserContext`` they are bound to.
    """

    pass
