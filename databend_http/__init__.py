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
from . import auth
from . import client
from . import config
from . import constants
from . import context
from . import exceptions
from . import logging
from . import models
from . import retry
from . import session
from . import transport
from ._version import __author__
from ._version import __author_email__
from ._version import __description__
from ._version import __license__
from ._version import __title__
from ._version import __url__
from ._version import __version__
from .client import APIClient
from .config import Config
from .context import Context
from .models import StageLocation

__all__ = [
    "auth",
    "client",
    "config",
    "constants",
    "context",
    "exceptions",
    "logging",
    "models",
    "retry",
    "session",
    "transport",
    "APIClient",
    "Config",
    "Context",
    "StageLocation",
    "__author__",
    "__author_email__",
    "__description__",
    "__license__",
    "__title__",
    "__url__",
    "__version__",
]
