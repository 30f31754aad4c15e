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

This module implements the Databend HTTP query protocol: it submits SQL
statements, follows their pages until the server is done and releases the
server side handle afterwards.

The outline of a query is:
- Send HTTP POST with the statement and the current session to ``/v1/query``
- Retrieve a response with the first rows and a ``next_uri``
- Send HTTP GET to ``next_uri`` until a response comes without one
- Send HTTP GET to ``final_uri`` to release the query, or to ``kill_uri``
  to cancel it early

Every response may carry a new session (current database, role, settings,
transaction). It replaces the one held by the client even when the query
failed, a failed COMMIT still ends the transaction.

The main interface is :class:`APIClient`: ::

    >> client = APIClient(Config(host="localhost:8000", user="root", ssl_mode="disable"))
    >> response = client.query_sync(Context(), "SELECT 1")
    >> response.data
    [['1']]
"""
import dataclasses
import json
import uuid
from typing import Any, BinaryIO, Callable, Dict, Iterator, List, Optional, Sequence

import requests
from requests.structures import CaseInsensitiveDict

import databend_http.logging
from databend_http import constants, exceptions
from databend_http._version import __version__
from databend_http.config import Config
from databend_http.context import Context
from databend_http.models import (
    PaginationConfig,
    PresignedResponse,
    QueryRequest,
    QueryResponse,
    Row,
    StageAttachment,
    StageLocation,
)
from databend_http.retry import RequestType, RetryPolicy
from databend_http.session import SessionState, SessionStateManager
from databend_http.transport import new_http_session

__all__ = [
    "APIClient",
    "QueryResult",
]

logger = databend_http.logging.get_logger(__name__)


class QueryResult:
    """
    Represent the result of a query as an iterator on rows.

    Pages are fetched lazily while iterating. The server side handle is
    released once the last page is consumed or :meth:`close` is called,
    whichever comes first. Starting another query on the same client closes
    the result too.
    """

    def __init__(self, client: "APIClient", ctx: Context, response: QueryResponse) -> None:
        self._client = client
        self._ctx = ctx
        self._response = response
        self._schema = response.schema
        self._rows: List[Row] = response.data
        self._rownumber = 0
        self._closed = False

    @property
    def query_id(self) -> str:
        return self._response.id

    @property
    def schema(self) -> List[Dict[str, Any]]:
        return self._schema

    @property
    def stats(self):
        return self._response.stats

    @property
    def response(self) -> QueryResponse:
        return self._response

    @property
    def rownumber(self) -> int:
        return self._rownumber

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[Row]:
        while True:
            rows, self._rows = self._rows, []
            for row in rows:
                self._rownumber += 1
                yield row
            if self._closed or self._response.finished:
                break
            self._fetch()
        self.close()

    def _fetch(self) -> None:
        try:
            response = self._client.poll_query(self._ctx, self._response.next_uri)
        except Exception:
            # the query is still running on the server
            self.close()
            raise
        if response.error is not None:
            self.close()
            raise exceptions.QueryError(response.error, response.id or self.query_id)
        self._response = response
        if response.schema:
            self._schema = response.schema
        self._rows = response.data

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._response.finished:
            self._client.close_query(self._ctx, self._response)
        else:
            self._client.kill_query(self._ctx, self._response)

    def __enter__(self) -> "QueryResult":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


class _SizedReader:
    """
    File-like view of the first ``size`` bytes of a stream. ``requests`` takes
    the body length from ``len()`` and sends the body in blocks.
    """

    def __init__(self, stream: BinaryIO, size: int) -> None:
        self._stream = stream
        self._size = size
        self._remaining = size

    def __len__(self) -> int:
        return self._size

    def read(self, amt: Optional[int] = -1) -> bytes:
        if self._remaining <= 0:
            return b""
        if amt is None or amt < 0 or amt > self._remaining:
            amt = self._remaining
        data = self._stream.read(amt)
        self._remaining -= len(data)
        return data


class APIClient:
    """
    Manage the HTTP requests of one Databend session.

    :param config: connection settings, see :class:`databend_http.config.Config`.
    :param http_session: ``requests`` session to use instead of a new pooled one.
    :param retry_policy: replaces the default :class:`RetryPolicy`.
    :param interpolate_params: ``func(sql, params) -> sql`` used when a
                               statement is submitted with parameters.

    A client is one logical connection: it runs one statement at a time.
    Submitting a query and applying a response mutate the query sequence
    and the session without locking, so a client shared between threads
    must be used under the caller's own lock. Distinct clients are
    independent.

    When the client makes an HTTP request, it may encounter the following
    errors:
    - The request cannot be sent or the response cannot be read. These are
      retried according to :class:`RetryPolicy`.
    - The server answers 401. With a bearer token, the token is reloaded
      and the request is sent once more.
    - The server answers with another error status. The error is raised
      right away with the status code and the response body.
    """

    http = requests

    def __init__(
        self,
        config: Config,
        http_session: Optional[requests.Session] = None,
        retry_policy: Optional[RetryPolicy] = None,
        interpolate_params: Optional[Callable[[str, Sequence[Any]], str]] = None,
    ) -> None:
        self.session_id = str(uuid.uuid4())
        self.query_seq = 0

        self._config = config
        self._api_endpoint = config.api_endpoint
        self._http_session = http_session if http_session is not None else new_http_session(config)
        self._auth = config.authentication()
        self._retry_policy = retry_policy if retry_policy is not None else RetryPolicy()
        self._interpolate_params = interpolate_params
        self._rows: Optional[QueryResult] = None

        # A configured role is the only effective one unless the session
        # runs ``SET SECONDARY ROLES ALL`` later on.
        secondary_roles: Optional[List[str]] = [] if config.role else None
        self._session_state = SessionStateManager(
            SessionState(
                database=config.database,
                role=config.role,
                secondary_roles=secondary_roles,
                settings=dict(config.settings),
            )
        )

        self.wait_time_secs = config.wait_time_secs
        self.max_rows_in_buffer = config.max_rows_in_buffer
        self.max_rows_per_page = config.max_rows_per_page
        self.presigned_url_disabled = config.presigned_url_disabled
        self.empty_field_as = config.empty_field_as

    @property
    def query_id(self) -> str:
        return "{}.{}".format(self.session_id, self.query_seq)

    @property
    def session_state(self) -> SessionState:
        return self._session_state.state

    @property
    def session_state_raw(self) -> Dict[str, Any]:
        return self._session_state.current()

    def next_query(self) -> None:
        if self._rows is not None:
            rows, self._rows = self._rows, None
            rows.close()
        self.query_seq += 1

    def make_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return self._api_endpoint + path

    def make_headers(self, ctx: Context) -> CaseInsensitiveDict:
        headers: CaseInsensitiveDict = CaseInsensitiveDict()
        headers[constants.HEADER_ROUTE] = constants.ROUTE_WAREHOUSE
        user_agent = "{}/{}".format(constants.CLIENT_NAME, __version__)
        if ctx.user_agent:
            user_agent = "{}/{}".format(user_agent, ctx.user_agent)
        headers[constants.HEADER_USER_AGENT] = user_agent
        if self._config.tenant:
            headers[constants.HEADER_TENANT] = self._config.tenant
        if self._config.warehouse:
            headers[constants.HEADER_WAREHOUSE] = self._config.warehouse
        headers[constants.HEADER_QUERY_ID] = ctx.query_id or self.query_id

        if self._auth is None:
            raise exceptions.ConfigurationError("no user password or access token")
        headers[constants.HEADER_AUTHORIZATION] = self._auth.authorization_header()
        return headers

    def _request_timeout(self, ctx: Context, timeout: Optional[float] = None) -> Optional[float]:
        timeouts = [t for t in (timeout, self._config.timeout, ctx.remaining()) if t is not None]
        if not timeouts:
            return None
        # urllib3 rejects a zero timeout
        return max(min(timeouts), 0.001)

    def do_request(
        self,
        ctx: Context,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Optional[Any]:
        """
        Send one request and return the decoded JSON body, ``None`` when the
        response is not JSON. Headers are built again for every attempt since
        the credential may change in between.
        """
        data = None
        if body is not None:
            try:
                data = json.dumps(body)
            except (TypeError, ValueError) as e:
                raise exceptions.ProgrammingError("failed to encode request body: {}".format(e)) from e

        url = self.make_url(path)
        for attempt in range(1, constants.MAX_REQUEST_ATTEMPTS + 1):
            ctx.check()
            headers = self.make_headers(ctx)
            headers[constants.HEADER_CONTENT_TYPE] = constants.JSON_CONTENT_TYPE
            headers[constants.HEADER_ACCEPT] = constants.JSON_CONTENT_TYPE

            logger.debug("%s %s (query_id=%s)", method, url, headers[constants.HEADER_QUERY_ID])
            try:
                http_response = self._http_session.request(
                    method,
                    url,
                    data=data,
                    headers=headers,
                    timeout=self._request_timeout(ctx),
                    stream=True,
                )
            except requests.exceptions.RequestException as e:
                raise exceptions.DoRequestError("failed to do request: {}".format(e)) from e

            try:
                content = http_response.content
            except requests.exceptions.RequestException as e:
                raise exceptions.ReadResponseError("failed to read response body: {}".format(e)) from e
            finally:
                http_response.close()

            status_code = http_response.status_code
            if status_code == 401:
                if attempt < constants.MAX_REQUEST_ATTEMPTS and self._auth.refresh():
                    logger.debug("authorization failed, retrying with a refreshed access token")
                    continue
                raise exceptions.AuthorizationError("authorization failed", status_code, content)
            if status_code >= 500:
                raise exceptions.ServerError("please retry again later", status_code, content)
            if status_code >= 400:
                raise exceptions.ArgumentError("please check your arguments", status_code, content)
            if status_code != 200:
                raise exceptions.UnexpectedStatusError("unexpected HTTP status code", status_code, content)

            content_type = http_response.headers.get(constants.HEADER_CONTENT_TYPE, "")
            if not content_type.startswith(constants.JSON_CONTENT_TYPE):
                return None
            try:
                return json.loads(content)
            except ValueError as e:
                raise exceptions.ResponseDecodeError("failed to decode response body: {}".format(e)) from e

        raise exceptions.OperationalError(
            "failed to do request after {} attempts".format(constants.MAX_REQUEST_ATTEMPTS)
        )

    def _pagination_config(self) -> Optional[PaginationConfig]:
        return PaginationConfig.create(self.wait_time_secs, self.max_rows_in_buffer, self.max_rows_per_page)

    def _apply_response(self, response: QueryResponse) -> None:
        self._session_state.apply(response.session)
        tracker = self._config.stats_tracker
        if tracker is not None and response.stats is not None:
            try:
                tracker(response.id, response.stats)
            except Exception as e:
                logger.warning("stats tracker failed for query %s: %s", response.id, e)

    def _build_query(self, sql: str, params: Optional[Sequence[Any]]) -> str:
        if not params:
            return sql
        if self._interpolate_params is None:
            raise exceptions.NotSupportedError("query parameters given but no interpolation is configured")
        try:
            return self._interpolate_params(sql, params)
        except exceptions.Error:
            raise
        except Exception as e:
            raise exceptions.ProgrammingError("failed to interpolate params: {}".format(e)) from e

    def start_query_request(self, ctx: Context, request: QueryRequest) -> QueryResponse:
        self.next_query()
        logger.debug("starting query %s", self.query_id)
        body = request.to_json()
        payload = self._retry_policy.execute(
            lambda: self.do_request(ctx, "POST", constants.URL_QUERY_PATH, body),
            RequestType.QUERY,
            ctx,
        )
        response = QueryResponse.from_json(payload)
        # The session is applied even if the query failed.
        self._apply_response(response)
        return response

    def start_query(self, ctx: Context, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResponse:
        request = QueryRequest(
            sql=self._build_query(sql, params),
            pagination=self._pagination_config(),
            session=self._session_state.current(),
        )
        return self.start_query_request(ctx, request)

    def poll_query(self, ctx: Context, next_uri: str) -> QueryResponse:
        payload = self._retry_policy.execute(
            lambda: self.do_request(ctx, "GET", next_uri),
            RequestType.PAGE,
            ctx,
        )
        response = QueryResponse.from_json(payload)
        self._apply_response(response)
        return response

    def poll_until_query_end(self, ctx: Context, response: QueryResponse) -> QueryResponse:
        """Follow ``next_uri`` until the server is done, accumulating rows."""
        data = list(response.data)
        while not response.finished:
            response = self.poll_query(ctx, response.next_uri)
            if response.error is not None:
                raise exceptions.QueryError(response.error, response.id or None)
            data.extend(response.data)
        return dataclasses.replace(response, data=data)

    def _cleanup(self, ctx: Context, uri: Optional[str], request_type: RequestType) -> None:
        # Failures are logged, never raised. Runs under its own deadline,
        # also after the caller's context expired or was cancelled.
        if not uri:
            return
        cleanup_ctx = ctx.detached(constants.CLEANUP_TIMEOUT)
        try:
            self._retry_policy.execute(
                lambda: self.do_request(cleanup_ctx, "GET", uri),
                request_type,
                cleanup_ctx,
            )
        except Exception as e:
            logger.warning("%s request to %s failed: %s", request_type.value, uri, e)

    def close_query(self, ctx: Context, response: Optional[QueryResponse]) -> None:
        if response is not None:
            self._cleanup(ctx, response.final_uri, RequestType.FINAL)

    def kill_query(self, ctx: Context, response: Optional[QueryResponse]) -> None:
        if response is not None:
            self._cleanup(ctx, response.kill_uri, RequestType.KILL)

    def _run_to_completion(self, ctx: Context, response: QueryResponse) -> QueryResponse:
        last = response
        try:
            if response.error is not None:
                raise exceptions.QueryError(response.error, response.id or None)
            last = self.poll_until_query_end(ctx, response)
            return last
        finally:
            self.close_query(ctx, last)

    def query_sync(self, ctx: Context, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResponse:
        response = self.start_query(ctx, sql, params)
        return self._run_to_completion(ctx, response)

    def iter_query(self, ctx: Context, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        response = self.start_query(ctx, sql, params)
        if response.error is not None:
            self.close_query(ctx, response)
            raise exceptions.QueryError(response.error, response.id or None)
        self._rows = QueryResult(self, ctx, response)
        return self._rows

    def new_default_csv_format_options(self) -> Dict[str, str]:
        options = dict(constants.DEFAULT_CSV_FORMAT_OPTIONS)
        options[constants.EMPTY_FIELD_AS] = self.empty_field_as
        return options

    def new_default_copy_options(self) -> Dict[str, str]:
        return dict(constants.DEFAULT_COPY_OPTIONS)

    def insert_with_stage(
        self,
        ctx: Context,
        sql: str,
        stage: Optional[StageLocation],
        file_format_options: Optional[Dict[str, str]] = None,
        copy_options: Optional[Dict[str, str]] = None,
    ) -> QueryResponse:
        if stage is None:
            raise exceptions.ProgrammingError("stage location required for insert with stage")
        if file_format_options is None:
            file_format_options = self.new_default_csv_format_options()
        if copy_options is None:
            copy_options = self.new_default_copy_options()
        request = QueryRequest(
            sql=sql,
            pagination=self._pagination_config(),
            session=self._session_state.current(),
            stage_attachment=StageAttachment(
                location=str(stage),
                file_format_options=file_format_options,
                copy_options=copy_options,
            ),
        )
        response = self.start_query_request(ctx, request)
        return self._run_to_completion(ctx, response)

    def upload_to_stage(self, ctx: Context, stage: StageLocation, stream: BinaryIO, size: int) -> None:
        if self.presigned_url_disabled:
            self.upload_to_stage_by_api(ctx, stage, stream)
        else:
            self.upload_to_stage_by_presign_url(ctx, stage, stream, size)

    def get_presigned_url(self, ctx: Context, stage: StageLocation) -> PresignedResponse:
        response = self.query_sync(ctx, "PRESIGN UPLOAD {}".format(stage))
        if not response.data or len(response.data[0]) < 3:
            raise exceptions.ResponseDecodeError(
                "generate presign url invalid response: {}".format(response.data)
            )
        method, headers, url = response.data[0][:3]
        try:
            decoded_headers = json.loads(headers)
        except (TypeError, ValueError) as e:
            raise exceptions.ResponseDecodeError("failed to decode presigned headers: {}".format(e)) from e
        if not isinstance(decoded_headers, dict):
            raise exceptions.ResponseDecodeError("presigned headers are not an object: {}".format(headers))
        return PresignedResponse(
            method=method,
            headers={str(k): str(v) for k, v in decoded_headers.items()},
            url=url,
        )

    def upload_to_stage_by_presign_url(
        self, ctx: Context, stage: StageLocation, stream: BinaryIO, size: int
    ) -> None:
        presigned = self.get_presigned_url(ctx, stage)
        headers = dict(presigned.headers)
        headers[constants.HEADER_CONTENT_LENGTH] = str(size)
        # The object store expects exactly ``size`` bytes.
        data = _SizedReader(stream, size)

        ctx.check()
        logger.debug("uploading %s bytes to %s by presigned url", size, stage)
        try:
            # Presigned URLs point to the object store, not to the query
            # endpoint: use a separate transport with a fixed timeout.
            with self.http.Session() as http_session:
                http_response = http_session.put(
                    presigned.url,
                    data=data,
                    headers=headers,
                    timeout=constants.UPLOAD_TIMEOUT,
                )
        except requests.exceptions.RequestException as e:
            raise exceptions.DoRequestError("failed to upload to stage by presigned url: {}".format(e)) from e

        if http_response.status_code >= 400:
            raise exceptions.StageUploadError(
                "failed to upload to stage by presigned url",
                http_response.status_code,
                http_response.content,
            )

    def upload_to_stage_by_api(self, ctx: Context, stage: StageLocation, stream: BinaryIO) -> None:
        ctx.check()
        headers = self.make_headers(ctx)
        headers[constants.HEADER_STAGE_NAME] = stage.name
        url = self.make_url(constants.URL_UPLOAD_TO_STAGE_PATH)

        logger.debug("uploading to %s through %s", stage, url)
        try:
            http_response = self._http_session.put(
                url,
                files={"upload": (stage.path, stream)},
                headers=headers,
                timeout=self._request_timeout(ctx, constants.UPLOAD_TIMEOUT),
            )
        except requests.exceptions.RequestException as e:
            raise exceptions.DoRequestError("failed http do request: {}".format(e)) from e

        status_code = http_response.status_code
        if status_code == 401:
            raise exceptions.AuthorizationError("please check your user/password.", status_code, http_response.content)
        if status_code >= 500:
            raise exceptions.ServerError("please retry again later.", status_code, http_response.content)
        if status_code >= 400:
            raise exceptions.ArgumentError("please check your arguments.", status_code, http_response.content)

    def close(self) -> None:
        if self._rows is not None:
            rows, self._rows = self._rows, None
            rows.close()
        self._http_session.close()

    def __enter__(self) -> "APIClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
