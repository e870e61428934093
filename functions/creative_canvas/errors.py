"""
Error kinds surfaced by the relay and converted to JSON bodies at the edge.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)


class RelayError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_body(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(RelayError):
    """A required request field is missing or malformed."""

    status_code = 400


class UpstreamError(RelayError):
    """The generative platform rejected a call or a job finished with an error."""


class ResponseParseError(RelayError):
    """The model answered, but not in the structure we asked for."""


class MissingPayloadError(RelayError):
    """A successful upstream response lacks the image or video we need."""


class CreationNotFoundError(MissingPayloadError):
    status_code = 404


@contextmanager
def reported_as(message: str) -> Iterator[None]:
    """
    Converts any non-relay failure inside the block into a 500 RelayError
    carrying the original exception text.
    """
    try:
        yield
    except RelayError:
        raise
    except Exception as e:
        logger.exception(message)
        raise RelayError(message, details=str(e)) from e
