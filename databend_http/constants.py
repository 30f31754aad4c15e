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

from typing import Dict

CLIENT_NAME = "databend-http-python"

HTTP = "http"
HTTPS = "https"

SSL_MODE_DISABLE = "disable"
SSL_MODE_ENABLE = "enable"

URL_QUERY_PATH = "/v1/query"
URL_UPLOAD_TO_STAGE_PATH = "/v1/upload_to_stage"

HEADER_ROUTE = "X-DATABEND-ROUTE"
HEADER_TENANT = "X-DATABEND-TENANT"
HEADER_WAREHOUSE = "X-DATABEND-WAREHOUSE"
HEADER_QUERY_ID = "X-DATABEND-QUERY-ID"
HEADER_USER_AGENT = "User-Agent"
HEADER_AUTHORIZATION = "Authorization"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_ACCEPT = "Accept"
HEADER_CONTENT_LENGTH = "Content-Length"
HEADER_STAGE_NAME = "stage_name"

ROUTE_WAREHOUSE = "warehouse"
JSON_CONTENT_TYPE = "application/json"

DEFAULT_EMPTY_FIELD_AS = "null"
DEFAULT_POOL_MAXSIZE = 10

# Attempts per request inside the executor: the first one plus one more
# after a forced token refresh on 401.
MAX_REQUEST_ATTEMPTS = 2

QUERY_RETRY_DELAY: float = 2.0
QUERY_RETRY_ATTEMPTS = 5
DEFAULT_RETRY_DELAY: float = 1.0
DEFAULT_RETRY_ATTEMPTS = 3

CLEANUP_TIMEOUT: float = 30.0
UPLOAD_TIMEOUT: float = 60.0

# Marker the server puts in errors while a warehouse is being provisioned.
PROVISION_WAREHOUSE_TIMEOUT = "ProvisionWarehouseTimeout"

EMPTY_FIELD_AS = "empty_field_as"
PURGE = "purge"

DEFAULT_CSV_FORMAT_OPTIONS: Dict[str, str] = {
    "type": "CSV",
    "field_delimiter": ",",
    "record_delimiter": "\n",
    "skip_header": "0",
}

DEFAULT_COPY_OPTIONS: Dict[str, str] = {
    PURGE: "true",
}
