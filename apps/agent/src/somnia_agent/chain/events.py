"""Receipt log decoding keyed by event-signature hash (topic 0)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak, to_bytes, to_checksum_address

from somnia_agent.state.models import DecodedEvent

_DYNAMIC_INDEXED_TYPES = ("string", "bytes")


def canonical_type(param: Mapping[str, Any]) -> str:
    abi_type = str(param.get("type") or "")
    if abi_type.startswith("tuple"):
        inner = ",".join(canonical_type(item) for item in param.get("components") or [])
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type


def event_signature(event_abi: Mapping[str, Any]) -> str:
    types = ",".join(canonical_type(item) for item in event_abi.get("inputs") or [])
    return f"{event_abi.get('name')}({types})"


def event_topic(event_abi: Mapping[str, Any]) -> bytes:
    return keccak(text=event_signature(event_abi))


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = str(value or "")
    if not text or text == "0x":
        return b""
    return to_bytes(hexstr=text)


def _normalize_value(abi_type: str, value: Any) -> Any:
    if abi_type == "address":
        return to_checksum_address(value)
    if abi_type.startswith("address[") and isinstance(value, (list, tuple)):
        return [to_checksum_address(item) for item in value]
    return value


def _is_hashed_when_indexed(abi_type: str) -> bool:
    return abi_type in _DYNAMIC_INDEXED_TYPES or abi_type.endswith("]") or abi_type.startswith("tuple")


@dataclass(frozen=True)
class _EventShape:
    abi: Mapping[str, Any]
    indexed: List[Mapping[str, Any]]
    data: List[Mapping[str, Any]]


class EventDecoder:
    """Decode raw receipt logs against one contract interface.

    Logs are matched on topic 0, so a log from an unrelated contract or event
    yields ``None`` rather than a best-effort guess.
    """

    def __init__(self, abi: Iterable[Mapping[str, Any]]) -> None:
        self._by_topic: Dict[bytes, _EventShape] = {}
        for item in abi:
            if str(item.get("type") or "") != "event" or item.get("anonymous"):
                continue
            inputs = list(item.get("inputs") or [])
            self._by_topic[event_topic(item)] = _EventShape(
                abi=item,
                indexed=[param for param in inputs if param.get("indexed")],
                data=[param for param in inputs if not param.get("indexed")],
            )

    def decode(self, log: Mapping[str, Any]) -> Optional[DecodedEvent]:
        topics = [_as_bytes(item) for item in list(log.get("topics") or [])]
        if not topics:
            return None
        shape = self._by_topic.get(topics[0])
        if shape is None or len(topics) - 1 != len(shape.indexed):
            return None

        args: Dict[str, Any] = {}
        try:
            for param, topic in zip(shape.indexed, topics[1:]):
                abi_type = canonical_type(param)
                if _is_hashed_when_indexed(abi_type):
                    args[str(param.get("name"))] = "0x" + topic.hex()
                    continue
                (value,) = abi_decode([abi_type], topic)
                args[str(param.get("name"))] = _normalize_value(abi_type, value)

            data_types = [canonical_type(param) for param in shape.data]
            values = abi_decode(data_types, _as_bytes(log.get("data"))) if data_types else ()
            for param, value in zip(shape.data, values):
                args[str(param.get("name"))] = _normalize_value(canonical_type(param), value)
        except (DecodingError, ValueError):
            return None

        address = str(log.get("address") or "")
        return DecodedEvent(
            name=str(shape.abi.get("name")),
            args=args,
            address=to_checksum_address(address) if address else "",
            log_index=int(log.get("logIndex") or 0),
        )

    def find_first(self, logs: Sequence[Mapping[str, Any]], event_name: str) -> Optional[DecodedEvent]:
        for log in logs:
            decoded = self.decode(log)
            if decoded is not None and decoded.name == event_name:
                return decoded
        return None
