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

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from requests.structures import CaseInsensitiveDict

import databend_http.logging
from databend_http.models import decode_field, ensure_object

logger = databend_http.logging.get_logger(__name__)


@dataclass
class SessionState:
    """
    Decoded view of the session the server tracks for a client.

    ``secondary_roles`` has three states: ``None`` enables all roles granted
    to the user, ``[]`` enables none of them, a non-empty list enables
    exactly those. Settings compare without regard to key case or order.
    """

    database: str = ""
    role: str = ""
    secondary_roles: Optional[List[str]] = None
    settings: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    txn_state: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.settings, CaseInsensitiveDict):
            self.settings = CaseInsensitiveDict(self.settings or {})

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> "SessionState":
        payload = ensure_object(payload, "session")
        secondary_roles = decode_field(payload, "secondary_roles", list)
        return cls(
            database=decode_field(payload, "database", str) or "",
            role=decode_field(payload, "role", str) or "",
            secondary_roles=list(secondary_roles) if secondary_roles is not None else None,
            settings=CaseInsensitiveDict(decode_field(payload, "settings", dict) or {}),
            txn_state=decode_field(payload, "txn_state", str) or "",
        )

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.database:
            payload["database"] = self.database
        if self.role:
            payload["role"] = self.role
        if self.secondary_roles is not None:
            payload["secondary_roles"] = list(self.secondary_roles)
        if self.settings:
            payload["settings"] = dict(self.settings)
        if self.txn_state:
            payload["txn_state"] = self.txn_state
        return payload


class SessionStateManager:
    """
    Holds the session of one client.

    The payload received from the server is kept untouched and sent back as
    is, so fields this client does not know about survive the round trip.
    The decoded :class:`SessionState` is only for local inspection.

    This class does no locking: one client runs one statement at a time and
    callers sharing a client between threads must serialize access.
    """

    def __init__(self, initial: SessionState) -> None:
        self._state = initial
        self._raw: Dict[str, Any] = initial.to_json()

    @property
    def state(self) -> SessionState:
        return self._state

    def current(self) -> Dict[str, Any]:
        return copy.deepcopy(self._raw)

    def apply(self, session: Optional[Dict[str, Any]]) -> None:
        if session is None:
            return
        # a payload that fails to decode changes neither view
        state = SessionState.from_json(session)
        self._raw = session
        self._state = state
        logger.debug("session state updated: database=%s, role=%s", self._state.database, self._state.role)
