from typing import Optional


class UploadError(Exception):
    """Base class for every way a POST upload can fail."""


class TransportError(UploadError):
    """The request never produced a response (bad URL, timeout, network)."""


class RejectedStatusError(UploadError):
    """S3 answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(f'Upload rejected with HTTP status {status_code}')


class MissingResponseHeaderError(UploadError):
    """S3 accepted the upload but a required response header is missing.

    Usually the bucket's CORS configuration does not expose the header.
    """

    def __init__(self, header: str):
        self.header = header
        super().__init__(f'Upload response is missing the {header} header')
