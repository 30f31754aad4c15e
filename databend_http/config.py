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

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from databend_http import constants
from databend_http.auth import (
    AccessTokenAuthentication,
    AccessTokenLoader,
    Authentication,
    BasicAuthentication,
    CallableAccessTokenLoader,
    FileAccessTokenLoader,
    StaticAccessTokenLoader,
)


@dataclass
class Config:
    """
    Connection settings as handed over by whatever loads the configuration.

    :param host: ``host[:port]`` of the query endpoint.
    :param user: enables basic authentication together with ``password``.
    :param access_token: static bearer token.
    :param access_token_file: file holding a bearer token, read again when
                              the server rejects the cached one.
    :param access_token_loader: custom token source, takes precedence over
                                the two options above.
    :param ssl_mode: ``"disable"`` talks plain HTTP, anything else HTTPS.
    :param timeout: per-request transport timeout in seconds.
    :param wait_time_secs: how long the server may hold a page request.
    :param max_rows_in_buffer: rows the server buffers for the client.
    :param max_rows_per_page: rows returned per page.
    :param presigned_url_disabled: upload to stages through the query
                                   endpoint instead of a presigned URL.
    :param empty_field_as: value loaded for empty CSV fields.
    :param stats_tracker: called with ``(query_id, stats)`` for every
                          response carrying statistics.
    """

    host: str
    user: str = ""
    password: str = ""
    access_token: str = ""
    access_token_file: str = ""
    access_token_loader: Optional[AccessTokenLoader] = None
    tenant: str = ""
    warehouse: str = ""
    database: str = ""
    role: str = ""
    settings: Dict[str, str] = field(default_factory=dict)
    ssl_mode: str = constants.SSL_MODE_ENABLE
    tls_verify: bool = True
    timeout: Optional[float] = None
    wait_time_secs: int = 0
    max_rows_in_buffer: int = 0
    max_rows_per_page: int = 0
    presigned_url_disabled: bool = False
    empty_field_as: str = constants.DEFAULT_EMPTY_FIELD_AS
    enable_opentelemetry: bool = False
    stats_tracker: Optional[Callable] = None

    @property
    def http_scheme(self) -> str:
        if self.ssl_mode == constants.SSL_MODE_DISABLE:
            return constants.HTTP
        return constants.HTTPS

    @property
    def api_endpoint(self) -> str:
        return "{}://{}".format(self.http_scheme, self.host)

    def access_token_source(self) -> Optional[AccessTokenLoader]:
        if self.access_token_loader is not None:
            if isinstance(self.access_token_loader, AccessTokenLoader):
                return self.access_token_loader
            return CallableAccessTokenLoader(self.access_token_loader)
        if self.access_token_file:
            return FileAccessTokenLoader(self.access_token_file)
        if self.access_token:
            return StaticAccessTokenLoader(self.access_token)
        return None

    def authentication(self) -> Optional[Authentication]:
        if self.user:
            return BasicAuthentication(self.user, self.password)
        loader = self.access_token_source()
        if loader is not None:
            return AccessTokenAuthentication(loader)
        return None
