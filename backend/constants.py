"""
Application-wide constants.

This module centralizes magic strings and numbers used throughout the application
to improve maintainability and reduce duplication.
"""


class BatchLimits:
    """Request size limits for batch endpoints"""

    MAX_USERS_PER_BATCH = 500
    MAX_ITEMS_PER_USER = 100


class HTTPStatus:
    """HTTP status codes used throughout the application"""

    # Success
    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    # Client Errors
    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422

    # Server Errors
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
