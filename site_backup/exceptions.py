"""Exception classes for the site_backup package.

Every failure of an export run is raised as a subclass of BackupException,
so callers can catch the whole family in one place and still tell a
configuration problem from a network or local disk problem.

None of these exceptions carry the admin credential, in the message or in
any attribute.
"""
from typing import Optional


class BackupException(Exception):
    """Base exception for all site_backup errors.
    
    Catching this exception will catch all site_backup-specific errors.
    """
    pass


class TemplateResolutionError(BackupException):
    """Raised when the filename template can't be rendered.
    
    This can occur due to:
    - An unknown placeholder such as {{.HOST}}
    - Unbalanced or malformed {{ }} actions
    """
    pass


class RequestConstructionError(BackupException):
    """Raised when the export URL can't be turned into a request.
    
    Usually an empty, relative or non-http(s) server URL.
    """
    pass


class TransportError(BackupException):
    """Raised when the request fails at the network level.
    
    This can occur due to:
    - Connection refused or reset
    - DNS resolution failure
    - Server closing the connection mid-stream
    """

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class ExportTimeoutError(BackupException, TimeoutError):
    """Raised when the export deadline elapses.
    
    Covers connection, response and the whole body copy. A longer timeout
    may let the same export succeed.
    """

    def __init__(self, message: str, url: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__(message)
        self.url = url
        self.timeout = timeout


class RemoteRejectionError(BackupException):
    """Raised when the server answers with a status code >= 300.
    
    The drained response body is kept in ``body``; it usually holds the
    server's own explanation.
    """

    def __init__(self, message: str, status: int, body: str = "", url: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body
        self.url = url


class LocalIOError(BackupException):
    """Raised when the destination file can't be created or written.
    
    The remote side served the export fine; the problem is local
    (disk full, permission denied, missing directory).
    """

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
