"""Error categories surfaced to callers.

Each category carries the public status name and the HTTP status the routers
map it to. Failures recovered inside resolution or dispatch never reach these
classes; they are folded into the delivery report instead.
"""


class ServiceError(Exception):
    status = "internal"
    http_status = 500


class Unauthenticated(ServiceError):
    status = "unauthenticated"
    http_status = 401


class InvalidArgument(ServiceError):
    status = "invalid-argument"
    http_status = 400


class InternalError(ServiceError):
    pass
