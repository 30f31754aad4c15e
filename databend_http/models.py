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

Objects exchanged with the query endpoint. Only the fields the client acts
on are decoded; rows stay as the server sends them, lists of nullable
strings.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from databend_http import exceptions

Row = List[Optional[str]]


def decode_field(payload: Dict[str, Any], key: str, expected: Union[Type, Tuple[Type, ...]]) -> Any:
    """Value of ``key``, ``None`` when missing; a value of another type is a decode error."""
    value = payload.get(key)
    if value is not None and not isinstance(value, expected):
        raise exceptions.ResponseDecodeError(
            "unexpected type {} for field {}".format(type(value).__name__, key)
        )
    return value


def ensure_object(payload: Any, what: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise exceptions.ResponseDecodeError(
            "{} is not a JSON object: {}".format(what, type(payload).__name__)
        )
    return payload


@dataclass
class PaginationConfig:
    wait_time_secs: int = 0
    max_rows_in_buffer: int = 0
    max_rows_per_page: int = 0

    @classmethod
    def create(
        cls, wait_time_secs: int, max_rows_in_buffer: int, max_rows_per_page: int
    ) -> Optional["PaginationConfig"]:
        """``None`` when nothing is set, the block is then left out of the request."""
        if not wait_time_secs and not max_rows_in_buffer and not max_rows_per_page:
            return None
        return cls(wait_time_secs, max_rows_in_buffer, max_rows_per_page)

    def to_json(self) -> Dict[str, int]:
        return {
            "wait_time_secs": self.wait_time_secs,
            "max_rows_in_buffer": self.max_rows_in_buffer,
            "max_rows_per_page": self.max_rows_per_page,
        }


@dataclass(frozen=True)
class StageLocation:
    name: str
    path: str

    def __str__(self) -> str:
        return "@{}/{}".format(self.name, self.path)


@dataclass
class StageAttachment:
    location: str
    file_format_options: Dict[str, str] = field(default_factory=dict)
    copy_options: Dict[str, str] = field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        return {
            "location": self.location,
            "file_format_options": dict(self.file_format_options),
            "copy_options": dict(self.copy_options),
        }


@dataclass
class QueryRequest:
    sql: str
    pagination: Optional[PaginationConfig] = None
    session: Optional[Dict[str, Any]] = None
    stage_attachment: Optional[StageAttachment] = None

    def to_json(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"sql": self.sql}
        if self.pagination is not None:
            body["pagination"] = self.pagination.to_json()
        if self.session is not None:
            body["session"] = self.session
        if self.stage_attachment is not None:
            body["stage_attachment"] = self.stage_attachment.to_json()
        return body


@dataclass
class Progress:
    rows: int = 0
    bytes: int = 0

    @classmethod
    def from_json(cls, payload: Optional[Dict[str, Any]]) -> "Progress":
        payload = payload or {}
        return cls(
            rows=decode_field(payload, "rows", int) or 0,
            bytes=decode_field(payload, "bytes", int) or 0,
        )


@dataclass
class QueryStats:
    running_time_ms: float = 0.0
    scan_progress: Progress = field(default_factory=Progress)
    write_progress: Progress = field(default_factory=Progress)
    result_progress: Progress = field(default_factory=Progress)
    total_scan: Progress = field(default_factory=Progress)

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> "QueryStats":
        return cls(
            running_time_ms=decode_field(payload, "running_time_ms", (int, float)) or 0.0,
            scan_progress=Progress.from_json(decode_field(payload, "scan_progress", dict)),
            write_progress=Progress.from_json(decode_field(payload, "write_progress", dict)),
            result_progress=Progress.from_json(decode_field(payload, "result_progress", dict)),
            total_scan=Progress.from_json(decode_field(payload, "total_scan", dict)),
        )


@dataclass
class QueryResponse:
    id: str = ""
    session_id: Optional[str] = None
    session: Optional[Dict[str, Any]] = None
    schema: List[Dict[str, Any]] = field(default_factory=list)
    data: List[Row] = field(default_factory=list)
    state: str = ""
    error: Optional[Dict[str, Any]] = None
    stats: Optional[QueryStats] = None
    next_uri: Optional[str] = None
    final_uri: Optional[str] = None
    kill_uri: Optional[str] = None
    stats_uri: Optional[str] = None

    @classmethod
    def from_json(cls, payload: Optional[Dict[str, Any]]) -> "QueryResponse":
        """
        Decode a response body. ``None`` (a response without JSON) gives an
        empty response; a body of another shape raises
        :class:`databend_http.exceptions.ResponseDecodeError`.
        """
        if payload is None:
            payload = {}
        payload = ensure_object(payload, "query response")
        stats = decode_field(payload, "stats", dict)
        return cls(
            id=decode_field(payload, "id", str) or "",
            session_id=decode_field(payload, "session_id", str),
            session=decode_field(payload, "session", dict),
            schema=decode_field(payload, "schema", list) or [],
            data=decode_field(payload, "data", list) or [],
            state=decode_field(payload, "state", str) or "",
            error=decode_field(payload, "error", dict),
            stats=QueryStats.from_json(stats) if stats else None,
            next_uri=decode_field(payload, "next_uri", str),
            final_uri=decode_field(payload, "final_uri", str),
            kill_uri=decode_field(payload, "kill_uri", str),
            stats_uri=decode_field(payload, "stats_uri", str),
        )

    @property
    def finished(self) -> bool:
        return not self.next_uri

    def __repr__(self) -> str:
        return (
            "QueryResponse("
            "id={}, state={}, next_uri={}, final_uri={}, error={}, rows=<count={}>"
            ")".format(self.id, self.state, self.next_uri, self.final_uri, self.error, len(self.data))
        )


@dataclass
class PresignedResponse:
    method: str
    headers: Dict[str, str]
    url: str
