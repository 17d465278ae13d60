"""
compose_py.runtime.response — handler results and response padding.

Response is what init/execute handlers return: outbound messages, flat
attributes, structured events and an optional binary `data` payload.

Padding
-------
Outbound binary payloads are right-padded with spaces to the next multiple of
a block size (default 256) so response lengths leak less. Only binary data is
padded: a Response's attributes and events are never touched, and a payload
that is already a multiple of the block size comes back unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

BLOCK_SIZE = 256

_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")


def _check_key(key: str) -> str:
    if not isinstance(key, str) or not _KEY_RE.match(key):
        raise ValueError(f"invalid attribute key {key!r}")
    return key


@dataclass
class Event:
    type: str
    attributes: List[Tuple[str, str]] = field(default_factory=list)

    def add_attribute(self, key: str, value: Any) -> "Event":
        self.attributes.append((_check_key(key), str(value)))
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "attributes": [list(a) for a in self.attributes]}


@dataclass
class Response:
    messages: List[Any] = field(default_factory=list)
    attributes: List[Tuple[str, str]] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    data: Optional[bytes] = None

    # ---- builder ----

    def add_message(self, message: Any) -> "Response":
        self.messages.append(message)
        return self

    def add_attribute(self, key: str, value: Any) -> "Response":
        self.attributes.append((_check_key(key), str(value)))
        return self

    def add_event(self, event: Event) -> "Response":
        self.events.append(event)
        return self

    def set_data(self, data: bytes) -> "Response":
        self.data = bytes(data)
        return self

    # ---- composition ----

    def merge(self, other: "Response") -> "Response":
        """New Response with `other` appended; the later non-None data wins."""
        return Response(
            messages=self.messages + other.messages,
            attributes=self.attributes + other.attributes,
            events=self.events + other.events,
            data=other.data if other.data is not None else self.data,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messages": list(self.messages),
            "attributes": [list(a) for a in self.attributes],
            "events": [e.to_dict() for e in self.events],
            "data": self.data,
        }


def space_pad(data: bytes, block_size: int = BLOCK_SIZE) -> bytes:
    """Right-pad `data` with b' ' to a multiple of `block_size` (0 disables)."""
    data = bytes(data)
    if block_size <= 0:
        return data
    surplus = len(data) % block_size
    if surplus == 0:
        return data
    return data + b" " * (block_size - surplus)


def pad_response(response: Response, block_size: int = BLOCK_SIZE) -> Response:
    """Copy of `response` with only its binary data padded."""
    if response.data is None:
        return response
    return replace(response, data=space_pad(response.data, block_size))


__all__ = ["BLOCK_SIZE", "Event", "Response", "space_pad", "pad_response"]
