# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""

This module defines exceptions for Databend operations. It follows the
structure defined in pep-0249 and adds the failure taxonomy of the HTTP
query protocol on top of it.
"""
from typing import Any, Dict, Optional, Union

import databend_http.logging

logger = databend_http.logging.get_logger(__name__)


# PEP 249 Errors
class Error(Exception):
    pass


class Warning(Exception):
    pass


class InterfaceError(Error):
    pass


class DatabaseError(Error):
    pass


class InternalError(DatabaseError):
    pass


class OperationalError(DatabaseError):
    pass


class ProgrammingError(DatabaseError):
    pass


class IntegrityError(DatabaseError):
    pass


class DataError(DatabaseError):
    pass


class NotSupportedError(DatabaseError):
    pass


# client module errors
class ConfigurationError(InterfaceError):
    pass


class TokenLoadError(OperationalError):
    pass


class ContextCancelledError(OperationalError):
    pass


class ContextDeadlineExceededError(ContextCancelledError):
    pass


class DatabendConnectionError(OperationalError):
    pass


class DoRequestError(DatabendConnectionError):
    """The request could not be sent or no response arrived."""


class ReadResponseError(DatabendConnectionError):
    """The response arrived but its body could not be read."""


class ResponseDecodeError(InterfaceError):
    pass


class APIError(OperationalError):
    """
    An HTTP response with a status the client does not accept.

    Keeps the status code and the raw response body so that callers can
    tell a request to retry later (5xx) from a request to fix the arguments
    (4xx) or the credentials (401).
    """

    def __init__(self, message: str, status_code: int, body: Union[bytes, str, None] = None) -> None:
        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")
        self._message = message
        self._status_code = status_code
        self._body = body or ""
        super().__init__(str(self))

    @property
    def message(self) -> str:
        return self._message

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def body(self) -> str:
        return self._body

    def __str__(self) -> str:
        return "{}: status code {}, body: {}".format(self._message, self._status_code, self._body)

    def __repr__(self) -> str:
        return "{}(status_code={}, message=\"{}\")".format(
            self.__class__.__name__, self._status_code, self._message
        )


class AuthorizationError(APIError):
    pass


class ServerError(APIError):
    pass


class ArgumentError(APIError, ProgrammingError):
    pass


class UnexpectedStatusError(APIError):
    pass


class StageUploadError(APIError):
    pass


class QueryError(DatabaseError):
    """An error reported by the server inside a successful response."""

    def __init__(self, error: Dict[str, Any], query_id: Optional[str] = None) -> None:
        self._error = error
        self._query_id = query_id
        super().__init__(str(self))

    @property
    def code(self) -> Optional[int]:
        return self._error.get("code", None)

    @property
    def message(self) -> str:
        return self._error.get("message", "Databend did not return an error message")

    @property
    def kind(self) -> Optional[str]:
        return self._error.get("kind", None)

    @property
    def detail(self) -> Optional[str]:
        return self._error.get("detail", None)

    @property
    def query_id(self) -> Optional[str]:
        return self._query_id

    def __repr__(self) -> str:
        return '{}(code={}, kind={}, message="{}", query_id={})'.format(
            self.__class__.__name__,
            self.code,
            self.kind,
            self.message,
            self.query_id,
        )

    def __str__(self) -> str:
        return repr(self)
