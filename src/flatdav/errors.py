"""WebDAV error definitions for flatdav."""

# Methods the DAV layer answers. Sent in the Allow header of OPTIONS
# responses and of every 405.
ALLOWED_METHODS = "GET,HEAD,PUT,DELETE,PROPFIND,MKCOL,OPTIONS"


class DavError(Exception):
    """An error that maps onto an HTTP status with a plain-text body.

    Attributes:
        message: Human-readable error description, sent as the body.
        http_status: The HTTP status code to return.
        headers: Extra response headers (e.g. ``Allow`` for 405).
        content_type: Media type of the rendered body.
    """

    def __init__(
        self,
        message: str,
        http_status: int = 400,
        headers: dict[str, str] | None = None,
        content_type: str = "text/plain",
    ) -> None:
        """Initialize the DAV error.

        Args:
            message: Error description.
            http_status: HTTP status code (default 400).
            headers: Optional extra response headers.
            content_type: Media type of ``message`` (default text/plain).
        """
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.headers = headers or {}
        self.content_type = content_type


# -- Pre-defined errors --------------------------------------------------------


class BadRequest(DavError):
    """The request could not be understood."""

    def __init__(self, message: str = "Bad Request") -> None:
        super().__init__(message=message, http_status=400)


class Unauthorized(DavError):
    """Credentials are missing or wrong."""

    def __init__(self, realm: str = "flatdav") -> None:
        super().__init__(
            message="Unauthorized",
            http_status=401,
            headers={"WWW-Authenticate": f'Basic realm="{realm}"'},
        )


class Forbidden(DavError):
    """The server refuses to carry out the request."""

    def __init__(self, message: str = "Forbidden", content_type: str = "text/plain") -> None:
        super().__init__(message=message, http_status=403, content_type=content_type)


class NotFound(DavError):
    """No object and no descendant exists at the key."""

    def __init__(self, message: str = "Not Found") -> None:
        super().__init__(message=message, http_status=404)


class MethodNotAllowed(DavError):
    """The method cannot be applied to this resource."""

    def __init__(self, message: str = "Method Not Allowed") -> None:
        super().__init__(
            message=message,
            http_status=405,
            headers={"Allow": ALLOWED_METHODS},
        )


class PayloadTooLarge(DavError):
    """The upload exceeds the configured maximum size."""

    def __init__(self, max_bytes: int) -> None:
        super().__init__(
            message=f"File too large. Max {max_bytes // (1024 * 1024)}MB",
            http_status=413,
        )


class UnsupportedMediaType(DavError):
    """The request carries a body the method does not accept."""

    def __init__(self, message: str = "Unsupported Media Type") -> None:
        super().__init__(message=message, http_status=415)


class StoreFailure(DavError):
    """A backend operation failed; the description is surfaced to the client."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, http_status=500)
