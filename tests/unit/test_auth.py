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
import base64
import threading

import pytest

from databend_http.auth import (
    AccessTokenAuthentication,
    BasicAuthentication,
    CallableAccessTokenLoader,
    FileAccessTokenLoader,
    StaticAccessTokenLoader,
)
from databend_http.exceptions import TokenLoadError


def test_basic_authentication_header():
    auth = BasicAuthentication("root", "p@ss:word")

    header = auth.authorization_header()

    assert header.startswith("Basic ")
    assert base64.b64decode(header[len("Basic "):]) == b"root:p@ss:word"
    assert auth.refresh() is False


def test_basic_authentication_eq():
    assert BasicAuthentication("root", "secret") == BasicAuthentication("root", "secret")
    assert BasicAuthentication("root", "secret") != BasicAuthentication("root", "other")
    assert BasicAuthentication("root", "secret") != StaticAccessTokenLoader("secret")


def test_static_access_token():
    loader = StaticAccessTokenLoader("static-token")

    assert loader.load_access_token() == "static-token"
    assert loader.load_access_token(force_refresh=True) == "static-token"
    assert AccessTokenAuthentication(loader).authorization_header() == "Bearer static-token"


def test_file_access_token_is_cached(tmp_path):
    token_file = tmp_path / "token"
    token_file.write_text("token-1\n")
    loader = FileAccessTokenLoader(str(token_file))

    assert loader.load_access_token() == "token-1"
    token_file.write_text("token-2\n")
    assert loader.load_access_token() == "token-1"
    assert loader.load_access_token(force_refresh=True) == "token-2"
    assert loader.load_access_token() == "token-2"


def test_file_access_token_missing(tmp_path):
    loader = FileAccessTokenLoader(str(tmp_path / "missing"))

    with pytest.raises(TokenLoadError) as error:
        loader.load_access_token()
    assert "missing" in str(error.value)


def test_file_access_token_empty(tmp_path):
    token_file = tmp_path / "token"
    token_file.write_text("  \n")

    with pytest.raises(TokenLoadError):
        FileAccessTokenLoader(str(token_file)).load_access_token()


def test_file_access_token_concurrent_loads(tmp_path):
    token_file = tmp_path / "token"
    token_file.write_text("token-1")
    loader = FileAccessTokenLoader(str(token_file))
    tokens = []

    def load():
        tokens.append(loader.load_access_token())

    threads = [threading.Thread(target=load) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert tokens == ["token-1"] * 10


def test_callable_access_token():
    calls = []

    def load(force_refresh):
        calls.append(force_refresh)
        return "fresh-token" if force_refresh else "cached-token"

    auth = AccessTokenAuthentication(CallableAccessTokenLoader(load))

    assert auth.authorization_header() == "Bearer cached-token"
    assert auth.refresh() is True
    assert calls == [False, True]


def test_callable_access_token_empty():
    with pytest.raises(TokenLoadError):
        CallableAccessTokenLoader(lambda force_refresh: "").load_access_token()


def test_access_token_loader_errors_are_wrapped():
    def load(force_refresh):
        raise RuntimeError("vault unavailable")

    with pytest.raises(TokenLoadError) as error:
        AccessTokenAuthentication(CallableAccessTokenLoader(load)).authorization_header()
    assert "vault unavailable" in str(error.value)


def test_access_token_refresh_failure_still_retries(tmp_path):
    auth = AccessTokenAuthentication(FileAccessTokenLoader(str(tmp_path / "missing")))

    assert auth.refresh() is True


def test_access_token_authentication_eq(tmp_path):
    path = str(tmp_path / "token")
    assert AccessTokenAuthentication(FileAccessTokenLoader(path)) == AccessTokenAuthentication(
        FileAccessTokenLoader(path)
    )
    assert AccessTokenAuthentication(StaticAccessTokenLoader("a")) != AccessTokenAuthentication(
        StaticAccessTokenLoader("b")
    )
