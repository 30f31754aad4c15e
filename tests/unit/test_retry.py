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
from unittest import mock

import httpretty
import pytest
import requests
from httpretty import httprettified

from databend_http import constants
from databend_http.context import Context
from databend_http.exceptions import (
    ArgumentError,
    ContextCancelledError,
    ContextDeadlineExceededError,
    DoRequestError,
    ReadResponseError,
    ServerError,
)
from databend_http.retry import RequestType, RetryPolicy, is_provisioning_timeout
from tests.unit.server_test_utils import json_response, register_get, register_query, requests_to, text_response


class FailingCall:
    """Raise the given errors in turn, then return ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.mark.parametrize("request_type, attempts, delays", [
    (RequestType.QUERY, 5, [2.0] * 4),
    (RequestType.PAGE, 3, [1.0] * 2),
    (RequestType.FINAL, 3, [1.0] * 2),
    (RequestType.KILL, 3, [1.0] * 2),
])
def test_retry_budget_exhausted(sleep_recorder, request_type, attempts, delays):
    errors = [DoRequestError("failed to do request: {}".format(i)) for i in range(attempts + 1)]
    func = FailingCall(errors)

    with pytest.raises(DoRequestError) as error:
        RetryPolicy(sleep=sleep_recorder).execute(func, request_type)

    assert func.calls == attempts
    assert sleep_recorder.delays == delays
    # the last error is surfaced
    assert str(error.value) == "failed to do request: {}".format(attempts - 1)


def test_retry_succeeds_after_failures(sleep_recorder):
    func = FailingCall([DoRequestError("refused"), ReadResponseError("eof")], result={"id": "q"})

    assert RetryPolicy(sleep=sleep_recorder).execute(func, RequestType.PAGE) == {"id": "q"}
    assert func.calls == 3
    assert sleep_recorder.delays == [1.0, 1.0]


@pytest.mark.parametrize("err", [
    ServerError("please retry again later", 500, "boom"),
    ArgumentError("please check your arguments", 400, "bad"),
    ValueError("unrelated"),
    ContextCancelledError("context cancelled"),
    ContextDeadlineExceededError("context deadline exceeded"),
])
def test_not_retryable(sleep_recorder, err):
    func = FailingCall([err])

    with pytest.raises(type(err)):
        RetryPolicy(sleep=sleep_recorder).execute(func, RequestType.QUERY)

    assert func.calls == 1
    assert sleep_recorder.delays == []


def test_provisioning_timeout_retried_for_query_only(sleep_recorder):
    err = ServerError("please retry again later", 500, "ProvisionWarehouseTimeout: warehouse is starting")
    assert is_provisioning_timeout(err)
    assert RetryPolicy.is_retryable(err, RequestType.QUERY)
    assert not RetryPolicy.is_retryable(err, RequestType.PAGE)
    assert not RetryPolicy.is_retryable(err, RequestType.FINAL)

    func = FailingCall([err])
    assert RetryPolicy(sleep=sleep_recorder).execute(func, RequestType.QUERY) == "ok"
    assert sleep_recorder.delays == [2.0]


def test_cancelled_context_stops_retries(sleep_recorder):
    ctx = Context()

    def cancel_then_fail():
        ctx.cancel()
        raise DoRequestError("refused")

    with pytest.raises(ContextCancelledError):
        RetryPolicy(sleep=sleep_recorder).execute(cancel_then_fail, RequestType.QUERY, ctx)

    assert sleep_recorder.delays == [2.0]


def test_expired_context_is_not_attempted(sleep_recorder):
    func = FailingCall([])

    with pytest.raises(ContextDeadlineExceededError):
        RetryPolicy(sleep=sleep_recorder).execute(func, RequestType.PAGE, Context(timeout=0))

    assert func.calls == 0


def test_query_retries_connection_errors(make_client, sleep_recorder):
    client = make_client()
    with mock.patch.object(
        client._http_session, "request", side_effect=requests.exceptions.ConnectionError("refused")
    ) as request:
        with pytest.raises(DoRequestError):
            client.start_query(Context(), "SELECT 1")

    assert request.call_count == 5
    assert sleep_recorder.delays == [2.0] * 4


def test_page_retries_read_errors(make_client, sleep_recorder):
    http_response = mock.Mock(status_code=200)
    type(http_response).content = mock.PropertyMock(
        side_effect=requests.exceptions.ChunkedEncodingError("connection broken")
    )

    client = make_client()
    with mock.patch.object(client._http_session, "request", return_value=http_response) as request:
        with pytest.raises(ReadResponseError):
            client.poll_query(Context(), "/v1/query/q/page/1")

    assert request.call_count == 3
    assert http_response.close.call_count == 3
    assert sleep_recorder.delays == [1.0, 1.0]


def test_cancelled_context_sends_nothing(make_client):
    ctx = Context()
    ctx.cancel()

    client = make_client()
    with mock.patch.object(client._http_session, "request") as request:
        with pytest.raises(ContextCancelledError):
            client.start_query(ctx, "SELECT 1")

    request.assert_not_called()


@httprettified
def test_query_retried_while_warehouse_provisions(make_client, sleep_recorder, sample_page_response_data):
    register_query(
        text_response("ProvisionWarehouseTimeout: warehouse wh1 is starting", 500),
        json_response(sample_page_response_data),
    )

    response = make_client().start_query(Context(), "SELECT 1")

    assert response.id == sample_page_response_data["id"]
    assert len(requests_to(constants.URL_QUERY_PATH, "POST")) == 2
    assert sleep_recorder.delays == [2.0]


@httprettified
def test_page_not_retried_while_warehouse_provisions(make_client, sleep_recorder):
    register_get("/v1/query/q/page/1", text_response("ProvisionWarehouseTimeout", 500))

    with pytest.raises(ServerError):
        make_client().poll_query(Context(), "/v1/query/q/page/1")

    assert len(requests_to("/v1/query/q/page/1")) == 1
    assert sleep_recorder.delays == []


@httprettified
def test_retried_query_keeps_query_id(make_client, sample_page_response_data):
    register_query(
        text_response("ProvisionWarehouseTimeout", 500),
        json_response(sample_page_response_data),
    )

    client = make_client()
    client.start_query(Context(), "SELECT 1")

    query_ids = {
        request.headers[constants.HEADER_QUERY_ID]
        for request in httpretty.latest_requests()
    }
    assert query_ids == {f"{client.session_id}.1"}
