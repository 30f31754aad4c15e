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
Call context for requests issued by :class:`databend_http.client.APIClient`.

A context carries an optional query id and user agent tag that end up in
the request headers, a deadline and a cancellation flag. Children created
with :meth:`Context.with_timeout` share the cancellation flag of their
parent; contexts created with :meth:`Context.detached` do not.

    >> ctx = Context(timeout=60)
    >> client.query_sync(ctx, "SELECT 1")
"""
import threading
import time
from typing import Optional

from databend_http import exceptions


class Context:
    def __init__(
        self,
        query_id: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._query_id = query_id
        self._user_agent = user_agent
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()

    @property
    def query_id(self) -> Optional[str]:
        return self._query_id

    @property
    def user_agent(self) -> Optional[str]:
        return self._user_agent

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, ``None`` without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def check(self) -> None:
        if self.cancelled:
            raise exceptions.ContextCancelledError("context cancelled")
        if self.expired():
            raise exceptions.ContextDeadlineExceededError("context deadline exceeded")

    def with_timeout(self, timeout: float) -> "Context":
        child = self._copy()
        child._cancelled = self._cancelled
        deadline = time.monotonic() + timeout
        if self._deadline is not None:
            deadline = min(deadline, self._deadline)
        child._deadline = deadline
        return child

    def detached(self, timeout: Optional[float] = None) -> "Context":
        return Context(query_id=self._query_id, user_agent=self._user_agent, timeout=timeout)

    def _copy(self) -> "Context":
        ctx = Context(query_id=self._query_id, user_agent=self._user_agent)
        ctx._deadline = self._deadline
        return ctx

    def __repr__(self) -> str:
        return "Context(query_id={}, user_agent={}, remaining={}, cancelled={})".format(
            self._query_id, self._user_agent, self.remaining(), self.cancelled
        )


def background() -> Context:
    return Context()
