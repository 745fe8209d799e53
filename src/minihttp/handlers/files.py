"""
=============================================================================
FILE HANDLER
=============================================================================

Download and upload of single files under the base directory.

    GET  /files/<name>   → stream <directory>/<name> back
    POST /files/<name>   → write exactly Content-Length body bytes to it

=============================================================================
PATH RESOLUTION
=============================================================================

<name> is everything after "/files/", taken literally. It is joined onto
the base directory and resolved (following "..", and symlinks):

    directory = /srv/files
    /files/a.txt               → /srv/files/a.txt          OK
    /files/sub/b.txt           → /srv/files/sub/b.txt      OK
    /files/../../etc/passwd    → /etc/passwd               REFUSED (404)

With confinement on (default) a resolved path that leaves the base
directory is answered with 404, the same as a missing file, and logged as
a warning.

=============================================================================
STREAMING
=============================================================================

Neither direction holds the whole file in memory. Downloads hand the open
file to the response, which copies it chunk by chunk and closes it.
Uploads copy body chunks from the connection straight into the file.

=============================================================================
"""

import os
import logging
from pathlib import Path
from typing import Union

from ..http.errors import InternalError, NotFound
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, created


logger = logging.getLogger(__name__)


class FileHandler:
    """
    Serves /files/<name> from one base directory.

        files = FileHandler("test-files")
        router.get("/files/*name")(files.get)
        router.post("/files/*name")(files.post)
    """

    def __init__(self, directory: Union[str, Path], confine: bool = True, chunk_size: int = 64 * 1024):
        """
        Args:
            directory: Base directory. It does not have to exist yet; GETs
                       then 404 and POSTs fail with 500.
            confine: Refuse names that resolve outside ``directory``.
            chunk_size: Copy granularity for uploads.
        """
        self.directory = Path(directory).resolve()
        self.confine = confine
        self.chunk_size = chunk_size

    def _resolve(self, name: str) -> Path:
        """
        Map a request name to a filesystem path.

        Raises:
            NotFound: The name escapes the base directory.
        """
        path = (self.directory / name).resolve()

        if self.confine:
            try:
                path.relative_to(self.directory)
            except ValueError:
                logger.warning(f"Path traversal attempt: {name}")
                raise NotFound()

        return path

    def get(self, request: HTTPRequest) -> HTTPResponse:
        """
        Stream the file back as application/octet-stream.

        Raises:
            NotFound: The file does not exist or cannot be opened.
            InternalError: Its size could not be read.
        """
        path = self._resolve(request.path_params.get("name", ""))

        try:
            f = open(path, "rb")
        except OSError as e:
            logger.debug(f"Cannot open {path}: {e}")
            raise NotFound()

        try:
            size = os.fstat(f.fileno()).st_size
        except OSError as e:
            f.close()
            raise InternalError("reading file metadata") from e

        # The response owns f from here and closes it after writing
        return ResponseBuilder().stream(f, size).build()

    def post(self, request: HTTPRequest) -> HTTPResponse:
        """
        Store exactly Content-Length body bytes, replacing any existing file.

        Content-Length is checked before the file is touched, so a bad
        request never truncates an existing file.

        Raises:
            BadRequest: Content-Length missing or invalid, or body short.
            InternalError: The file could not be created or written.
        """
        path = self._resolve(request.path_params.get("name", ""))
        length = request.content_length

        try:
            f = open(path, "wb")
        except OSError as e:
            raise InternalError("opening file for write") from e

        with f:
            for chunk in request.iter_body(self.chunk_size):
                try:
                    f.write(chunk)
                except OSError as e:
                    raise InternalError("writing contents to file") from e

        logger.info(f"Stored {length} bytes in {path}")
        return created()
