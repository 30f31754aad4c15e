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

import pytest

from databend_http.client import APIClient
from databend_http.config import Config
from databend_http.retry import RetryPolicy
from tests.unit.server_test_utils import SERVER_HOST, SleepRecorder


@pytest.fixture
def sample_session_data():
    return {
        "database": "analytics",
        "role": "writer",
        "secondary_roles": [],
        "settings": {"max_threads": "8", "timezone": "UTC"},
        "txn_state": "AutoCommit",
        "need_sticky": False,
    }


@pytest.fixture
def sample_post_response_data(sample_session_data):
    """
    First response of a query that is still running: it carries the first
    page of rows and points to the next one.
    """
    return {
        "id": "d7b7e3b4-7b1c-4d5c-9c8e-4a0c1f1f0c11",
        "session_id": "4b1ab4d4-86de-4e21-9e95-69f3a47b0f5f",
        "session": sample_session_data,
        "schema": [
            {"name": "number", "type": "UInt64"},
            {"name": "name", "type": "Nullable(String)"},
        ],
        "data": [["0", "zero"], ["1", None]],
        "state": "Running",
        "error": None,
        "stats": {
            "scan_progress": {"rows": 2, "bytes": 16},
            "write_progress": {"rows": 0, "bytes": 0},
            "result_progress": {"rows": 2, "bytes": 16},
            "total_scan": {"rows": 4, "bytes": 32},
            "running_time_ms": 3.5,
        },
        "stats_uri": "/v1/query/d7b7e3b4-7b1c-4d5c-9c8e-4a0c1f1f0c11",
        "final_uri": "/v1/query/d7b7e3b4-7b1c-4d5c-9c8e-4a0c1f1f0c11/final",
        "next_uri": "/v1/query/d7b7e3b4-7b1c-4d5c-9c8e-4a0c1f1f0c11/page/1",
        "kill_uri": "/v1/query/d7b7e3b4-7b1c-4d5c-9c8e-4a0c1f1f0c11/kill",
    }


@pytest.fixture
def sample_page_response_data(sample_post_response_data):
    """Last page of the query above: no ``next_uri`` any more."""
    page = dict(sample_post_response_data)
    page.update({
        "data": [["2", "two"], ["3", "three"]],
        "state": "Succeeded",
        "next_uri": None,
        "stats": {
            "scan_progress": {"rows": 4, "bytes": 32},
            "result_progress": {"rows": 4, "bytes": 32},
            "running_time_ms": 7.25,
        },
    })
    return page


@pytest.fixture
def sample_error_response_data(sample_session_data):
    session = dict(sample_session_data)
    session["txn_state"] = "Fail"
    return {
        "id": "0e4e5d2a-5f44-4a8c-8a0b-8e4b1b6b2d10",
        "session": session,
        "schema": [],
        "data": [],
        "state": "Failed",
        "error": {
            "code": 1025,
            "message": "Unknown table 'analytics.missing'",
            "kind": "UnknownTable",
            "detail": "",
        },
        "stats": {"running_time_ms": 0.4},
        "final_uri": "/v1/query/0e4e5d2a-5f44-4a8c-8a0b-8e4b1b6b2d10/final",
        "next_uri": None,
        "kill_uri": "/v1/query/0e4e5d2a-5f44-4a8c-8a0b-8e4b1b6b2d10/kill",
    }


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def make_client(sleep_recorder):
    def factory(**kwargs):
        kwargs.setdefault("host", SERVER_HOST)
        kwargs.setdefault("ssl_mode", "disable")
        if not any(kwargs.get(k) for k in ("user", "access_token", "access_token_file", "access_token_loader")):
            kwargs.setdefault("user", "root")
            kwargs.setdefault("password", "secret")
        return APIClient(Config(**kwargs), retry_policy=RetryPolicy(sleep=sleep_recorder))

    return factory
