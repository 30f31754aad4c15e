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

import requests
from requests.adapters import HTTPAdapter

import databend_http.logging
from databend_http import constants
from databend_http.config import Config

logger = databend_http.logging.get_logger(__name__)


class TracingSession(requests.Session):
    """
    Session wrapping every request in an OpenTelemetry client span and
    propagating the trace context to the server in W3C headers.
    """

    def __init__(self) -> None:
        super().__init__()
        try:
            from opentelemetry import propagate, trace
        except ImportError:
            raise RuntimeError("unable to import opentelemetry, install databend-http-client[tracing]")
        self._propagate = propagate
        self._trace = trace
        self._tracer = trace.get_tracer(__name__)

    def request(self, method, url, *args, **kwargs):
        headers = dict(kwargs.pop("headers", None) or {})
        with self._tracer.start_as_current_span(
            "HTTP {}".format(method.upper()), kind=self._trace.SpanKind.CLIENT
        ) as span:
            span.set_attribute("http.method", method.upper())
            span.set_attribute("http.url", url)
            self._propagate.inject(headers)
            response = super().request(method, url, *args, headers=headers, **kwargs)
            span.set_attribute("http.status_code", response.status_code)
            if response.status_code >= 400:
                span.set_status(self._trace.Status(self._trace.StatusCode.ERROR))
            return response


def new_http_session(config: Config) -> requests.Session:
    """
    Pooled session shared by every request of one client. Retries are left
    to :class:`databend_http.retry.RetryPolicy`, so the adapter never retries.
    """
    session = TracingSession() if config.enable_opentelemetry else requests.Session()
    adapter = HTTPAdapter(
        pool_connections=constants.DEFAULT_POOL_MAXSIZE,
        pool_maxsize=constants.DEFAULT_POOL_MAXSIZE,
        max_retries=0,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.verify = config.tls_verify
    logger.debug("created http session for %s (tracing=%s)", config.api_endpoint, config.enable_opentelemetry)
    return session
