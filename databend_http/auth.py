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

import abc
import base64
import threading
from typing import Callable, Optional

import databend_http.logging
from databend_http import exceptions

logger = databend_http.logging.get_logger(__name__)


class AccessTokenLoader(metaclass=abc.ABCMeta):
    """
    Source of bearer tokens. Implementations must be safe to call from
    several threads at once: one loader may be shared by many clients.
    """

    @abc.abstractmethod
    def load_access_token(self, force_refresh: bool = False) -> str:
        pass


class StaticAccessTokenLoader(AccessTokenLoader):
    def __init__(self, access_token: str) -> None:
        self._access_token = access_token

    def load_access_token(self, force_refresh: bool = False) -> str:
        return self._access_token

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StaticAccessTokenLoader):
            return False
        return self._access_token == other._access_token


class FileAccessTokenLoader(AccessTokenLoader):
    """
    Reads the token from a file and caches it. The file is read again when
    nothing is cached yet or when a refresh is forced, which lets an external
    process rotate the token in place.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._access_token: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def path(self) -> str:
        return self._path

    def load_access_token(self, force_refresh: bool = False) -> str:
        with self._lock:
            if self._access_token is not None and not force_refresh:
                return self._access_token
            try:
                with open(self._path, "r", encoding="utf-8") as f:
                    access_token = f.read().strip()
            except OSError as e:
                raise exceptions.TokenLoadError(
                    "failed to read access token file {}: {}".format(self._path, e)
                ) from e
            if not access_token:
                raise exceptions.TokenLoadError("access token file {} is empty".format(self._path))
            logger.debug("loaded access token from %s", self._path)
            self._access_token = access_token
            return access_token

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileAccessTokenLoader):
            return False
        return self._path == other._path


class CallableAccessTokenLoader(AccessTokenLoader):
    """Adapts a plain ``func(force_refresh) -> token`` callable."""

    def __init__(self, func: Callable[[bool], str]) -> None:
        self._func = func

    def load_access_token(self, force_refresh: bool = False) -> str:
        access_token = self._func(force_refresh)
        if not access_token:
            raise exceptions.TokenLoadError("access token loader returned an empty token")
        return access_token


class Authentication(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def authorization_header(self) -> str:
        pass

    def refresh(self) -> bool:
        """
        Renew the credential after the server rejected it. Returns whether
        repeating the request with a new ``Authorization`` header can help.
        """
        return False


class BasicAuthentication(Authentication):
    def __init__(self, username: str, password: str) -> None:
        self._username = username
        self._password = password

    def authorization_header(self) -> str:
        credentials = "{}:{}".format(self._username, self._password).encode("utf-8")
        return "Basic " + base64.b64encode(credentials).decode("ascii")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BasicAuthentication):
            return False
        return self._username == other._username and self._password == other._password


class AccessTokenAuthentication(Authentication):
    def __init__(self, loader: AccessTokenLoader) -> None:
        self._loader = loader

    @property
    def loader(self) -> AccessTokenLoader:
        return self._loader

    def authorization_header(self) -> str:
        try:
            access_token = self._loader.load_access_token(force_refresh=False)
        except exceptions.TokenLoadError:
            raise
        except Exception as e:
            raise exceptions.TokenLoadError("failed to load access token: {}".format(e)) from e
        return "Bearer " + access_token

    def refresh(self) -> bool:
        # No timeout: a loader that hangs here stalls the request with it.
        try:
            self._loader.load_access_token(force_refresh=True)
        except Exception as e:
            logger.warning("failed to refresh access token: %s", e)
        return True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccessTokenAuthentication):
            return False
        return self._loader == other._loader
