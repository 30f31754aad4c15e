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

Retry policy of the query protocol.

Delays are fixed, not exponential. Submitting a query may hit a warehouse
that is still starting, so it gets a longer delay and a larger budget than
page, finalize and kill requests. Only connection level failures are
retried: the request never reached the server or its response could not
be read. An HTTP error status is surfaced after a single attempt.
"""
import time
from enum import Enum
from typing import Callable, Optional, Tuple, TypeVar

import databend_http.logging
from databend_http import constants, exceptions
from databend_http.context import Context

logger = databend_http.logging.get_logger(__name__)

T = TypeVar("T")


class RequestType(Enum):
    QUERY = "query"
    PAGE = "page"
    FINAL = "final"
    KILL = "kill"


def is_provisioning_timeout(err: BaseException) -> bool:
    # The server has no dedicated status for this, only the marker text.
    return constants.PROVISION_WAREHOUSE_TIMEOUT in str(err)


class RetryPolicy:
    def __init__(self, sleep: Callable[[float], None] = time.sleep) -> None:
        self._sleep = sleep

    @staticmethod
    def budget(request_type: RequestType) -> Tuple[float, int]:
        """``(delay in seconds, maximum attempts)`` for a request type."""
        if request_type is RequestType.QUERY:
            return constants.QUERY_RETRY_DELAY, constants.QUERY_RETRY_ATTEMPTS
        return constants.DEFAULT_RETRY_DELAY, constants.DEFAULT_RETRY_ATTEMPTS

    @staticmethod
    def is_retryable(err: BaseException, request_type: RequestType) -> bool:
        if isinstance(err, exceptions.ContextCancelledError):
            return False
        if isinstance(err, (exceptions.DoRequestError, exceptions.ReadResponseError)):
            return True
        if request_type is RequestType.QUERY and is_provisioning_timeout(err):
            return True
        return False

    def execute(self, func: Callable[[], T], request_type: RequestType, ctx: Optional[Context] = None) -> T:
        delay, max_attempts = self.budget(request_type)
        attempt = 0
        while True:
            attempt += 1
            if ctx is not None:
                ctx.check()
            try:
                return func()
            except Exception as err:
                if not self.is_retryable(err, request_type):
                    raise
                if attempt >= max_attempts:
                    logger.info("%s request failed after %s attempts", request_type.value, attempt)
                    raise
                logger.debug(
                    "%s request attempt %s/%s failed, retrying in %ss: %s",
                    request_type.value, attempt, max_attempts, delay, err,
                )
                self._sleep(delay)
