"""Common exceptions for the services.

This module contains reusable exception classes that can be used
across different services and modules. Messaging specific errors live
in ``social_backend.messaging.core``.
"""


class ResourceNotFoundError(Exception):
    """Raised when a resource doesn't exist.

    Generic exception for any resource that cannot be found by its identifier.
    """

    def __init__(self, resource_type: str, identifier: str):
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(f"{resource_type} not found: {identifier}")
