#!/usr/bin/env python3
"""
OSC transport for the Ableton Live UDP bridge.

A Max for Live device listens on UDP port 9000 via `udpreceive 9000` and
answers every `/api/*` request with `/ack` messages on port 9001. OSC
encoding is implemented using only the Python standard library.
"""

from __future__ import annotations

import argparse
import json
import select
import socket
import struct
import time
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9000
DEFAULT_ACK_PORT = 9001

OscArg = Union[int, float, str]

OscAck = Tuple[str, List[OscArg]]


@dataclass(frozen=True)
class OscCommand:
    address: str
    args: Tuple[OscArg, ...] = ()


def positive_int(value: str) -> int:
    parsed = int(value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be > 0")
    return parsed


def _pad4(length: int) -> int:
    remainder = length % 4
    return 0 if remainder == 0 else 4 - remainder


def _encode_osc_string(value: str) -> bytes:
    raw = value.encode("utf-8") + b"\x00"
    raw += b"\x00" * _pad4(len(raw))
    return raw


def _decode_osc_string(data: bytes, start: int) -> Tuple[str, int]:
    end = data.find(b"\x00", start)
    if end == -1:
        # Some OSC senders omit the trailing NUL on the final string.
        text = data[start:].decode("utf-8", errors="replace")
        return text, len(data)
    text = data[start:end].decode("utf-8", errors="replace")
    idx = end + 1
    idx += _pad4(idx)
    return text, idx


def encode_osc_message(address: str, args: Sequence[OscArg]) -> bytes:
    if not address.startswith("/"):
        raise ValueError(f"OSC address must start with '/': {address}")

    type_tags: List[str] = []
    payload = bytearray()

    for arg in args:
        if isinstance(arg, bool):
            type_tags.append("i")
            payload.extend(struct.pack(">i", int(arg)))
        elif isinstance(arg, int):
            type_tags.append("i")
            payload.extend(struct.pack(">i", arg))
        elif isinstance(arg, float):
            type_tags.append("f")
            payload.extend(struct.pack(">f", arg))
        elif isinstance(arg, str):
            type_tags.append("s")
            payload.extend(_encode_osc_string(arg))
        else:
            raise TypeError(f"Unsupported OSC argument type: {type(arg)}")

    type_tag_string = "," + "".join(type_tags)
    return _encode_osc_string(address) + _encode_osc_string(type_tag_string) + payload


def decode_osc_message(data: bytes) -> Tuple[str, List[OscArg]]:
    if data.startswith(b"#bundle"):
        raise ValueError("OSC bundles are not supported by this minimal decoder")

    address, idx = _decode_osc_string(data, 0)
    type_tags, idx = _decode_osc_string(data, idx)

    if not type_tags.startswith(","):
        raise ValueError(f"OSC type tags must start with ',': {type_tags}")

    args: List[OscArg] = []
    for tag in type_tags[1:]:
        if tag in ("i", "f"):
            if idx + 4 > len(data):
                raise ValueError(f"OSC {'int' if tag == 'i' else 'float'} argument truncated")
            args.append(struct.unpack(">" + tag, data[idx : idx + 4])[0])
            idx += 4
        elif tag == "s":
            value, idx = _decode_osc_string(data, idx)
            args.append(value)
        else:
            raise ValueError(f"Unsupported OSC type tag: {tag}")

    return address, args


def format_arg(value: OscArg) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def describe_command(cmd: OscCommand) -> str:
    if not cmd.args:
        return cmd.address
    return cmd.address + " " + " ".join(format_arg(arg) for arg in cmd.args)


def api_command(endpoint: str, *args: OscArg, request_id: str | None = None) -> OscCommand:
    """Build an ``/api/<endpoint>`` command; the request id always goes last."""
    tail: Tuple[OscArg, ...] = () if request_id is None else (request_id,)
    return OscCommand(f"/api/{endpoint}", tuple(args) + tail)


def _try_parse_json(value: OscArg) -> object | None:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return None


def _short_repr(value: object, max_len: int = 120) -> str:
    if isinstance(value, (dict, list)):
        text = json.dumps(value, separators=(",", ":"))
    else:
        text = str(value)
    return text if len(text) <= max_len else text[: max_len - 3] + "..."


# Position of the JSON payload in each ``/ack`` event, after the event name.
_PAYLOAD_INDEX = {
    "api_get": 3,
    "api_set": 3,
    "api_call": 3,
    "api_children": 3,
    "api_describe": 2,
}


def find_ack_payload(acks: Sequence[OscAck], event: str, request_id: str) -> Tuple[bool, object | None]:
    """Return ``(found, payload)`` for the ``event`` ack answering ``request_id``.

    JSON text payloads are decoded; anything else comes back as sent.
    """
    index = _PAYLOAD_INDEX[event]
    for address, args in acks:
        if address != "/ack" or len(args) <= index:
            continue
        if args[0] != event or str(args[-1]) != request_id:
            continue
        payload = args[index]
        if not isinstance(payload, str):
            return True, payload
        parsed = _try_parse_json(payload)
        return True, payload if parsed is None else parsed
    return False, None


def find_ack_error(acks: Sequence[OscAck], request_id: str) -> str | None:
    for address, args in acks:
        if address != "/ack" or len(args) < 3 or str(args[0]) != "error":
            continue
        if not str(args[1]).startswith("api_") or str(args[-1]) != request_id:
            continue
        return " ".join(str(a) for a in args[1:-1])
    return None


def _rpc_ack_summary(args: Sequence[OscArg]) -> str | None:
    if not args:
        return None
    event = str(args[0])

    def _req_suffix(request_id: OscArg | None) -> str:
        return "" if request_id in (None, "") else f" req={request_id}"

    if event in ("api_get", "api_set", "api_call") and len(args) >= 4:
        path, name, value = args[1], args[2], args[3]
        request_id = args[4] if len(args) >= 5 else None
        parsed = _try_parse_json(value)
        value_text = _short_repr(parsed if parsed is not None else value)
        return f"{event} {path} {name} -> {value_text}{_req_suffix(request_id)}"

    if event == "api_children" and len(args) >= 4:
        path, child_name, children_json = args[1], args[2], args[3]
        request_id = args[4] if len(args) >= 5 else None
        parsed = _try_parse_json(children_json)
        count = len(parsed) if isinstance(parsed, list) else "?"
        return f"api_children {path} {child_name} count={count}{_req_suffix(request_id)}"

    if event == "api_describe" and len(args) >= 3:
        path, describe_json = args[1], args[2]
        request_id = args[3] if len(args) >= 4 else None
        parsed = _try_parse_json(describe_json)
        if isinstance(parsed, dict):
            core = {key: parsed.get(key) for key in ("id", "path", "type")}
            core = {k: v for k, v in core.items() if v not in (None, "")}
            core_text = _short_repr(core) if core else _short_repr(parsed)
        else:
            core_text = _short_repr(describe_json)
        return f"api_describe {path} -> {core_text}{_req_suffix(request_id)}"

    if event == "error" and len(args) >= 2 and str(args[1]).startswith("api_"):
        request_id = args[-1] if len(args) >= 3 else None
        detail = " ".join(str(a) for a in args[1:])
        return f"api_error {detail}{_req_suffix(request_id)}"

    return None


def summarize_ack(address: str, args: Sequence[OscArg]) -> List[str]:
    suffix = "" if not args else " " + " ".join(format_arg(a) for a in args)
    lines = [f"ack:  {address}{suffix}"]

    if address == "/ack":
        summary = _rpc_ack_summary(args)
        if summary:
            lines.append(f"ack:  {summary}")

    return lines


def open_ack_socket(host: str, ack_port: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.bind((host, ack_port))
    except OSError:
        sock.close()
        raise
    sock.setblocking(False)
    return sock


def _read_packets(sock: socket.socket, into: List[OscAck]) -> bool:
    """Drain whatever is queued on ``sock``; False once the socket is unusable."""
    while True:
        try:
            packet, _addr = sock.recvfrom(65535)
        except BlockingIOError:
            return True
        except OSError:
            return False
        try:
            into.append(decode_osc_message(packet))
        except (ValueError, TypeError, struct.error) as exc:
            into.append(("<unparsed>", [f"{exc}: {packet!r}"]))


def wait_for_acks(
    sock: socket.socket,
    timeout_s: float,
    quiet_window_s: float = 0.05,
) -> List[OscAck]:
    if timeout_s <= 0:
        return []

    deadline = time.monotonic() + timeout_s
    received: List[OscAck] = []
    quiet_window = max(0.0, float(quiet_window_s))

    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break

        # Before the first packet wait up to the full timeout, then only a
        # short quiet window for follow-on packets.
        wait_timeout = remaining
        if received and quiet_window > 0.0:
            wait_timeout = min(wait_timeout, quiet_window)

        readable, _, _ = select.select([sock], [], [], wait_timeout)
        if not readable:
            break
        if not _read_packets(sock, received):
            break

    return received


def drain_acks(sock: socket.socket) -> List[OscAck]:
    drained: List[OscAck] = []
    _read_packets(sock, drained)
    return drained
