"""Load attack targets from line-delimited JSON and hand them out round-robin."""

import base64
import binascii
import json
import threading
from typing import Dict, Iterable, List, Optional, Tuple, Union

from rampload.models import Target


class TargetParseError(Exception):
    """Raised when a target line or header override is invalid."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.message = message
        self.line = line
        super().__init__(f"line {line}: {message}" if line is not None else message)


class NoTargetsError(Exception):
    """Raised when a targeter has nothing to hand out."""


def read_targets(
    lines: Iterable[Union[str, bytes]],
    body: bytes = b"",
    header: Optional[Dict[str, List[str]]] = None,
) -> Tuple[List[Target], List[TargetParseError]]:
    """Parse targets from JSON lines, one ``{"method", "url", ...}`` object each.

    Blank lines are skipped. A bad line is recorded and skipped; parsing
    always continues to the end of the input.

    Args:
        lines: Iterable of text or UTF-8 byte lines (an open file works).
        body: Default body, used when a line carries no body of its own.
        header: Extra headers appended after each line's own values.

    Returns:
        A tuple of (targets, errors).
    """
    header = header or {}
    targets: List[Target] = []
    errors: List[TargetParseError] = []

    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            if isinstance(line, bytes):
                line = _decode_line(line)
            targets.append(_parse_target(line, body, header))
        except TargetParseError as exc:
            errors.append(TargetParseError(exc.message, line=lineno))

    return targets, errors


def load_targets(
    path: str,
    body: bytes = b"",
    header: Optional[Dict[str, List[str]]] = None,
) -> Tuple[List[Target], List[TargetParseError]]:
    """Read targets from a file. OSError propagates to the caller."""
    with open(path, "rb") as f:
        return read_targets(f, body=body, header=header)


def parse_header(value: str) -> Tuple[str, str]:
    """Split a ``Name: value`` header override."""
    name, sep, val = value.partition(":")
    name = name.strip()
    if not sep or not name:
        raise TargetParseError(f"header {value!r} must be in 'Name: value' form")
    return name, val.strip()


def _decode_line(line: bytes) -> str:
    try:
        return line.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise TargetParseError(f"target is not valid UTF-8: {exc}") from exc


def _parse_target(line: str, body: bytes, header: Dict[str, List[str]]) -> Target:
    try:
        raw = json.loads(line)
    except json.JSONDecodeError as exc:
        raise TargetParseError(f"failed to parse target: {exc}") from exc

    if not isinstance(raw, dict):
        raise TargetParseError("target must be a JSON object")

    method = raw.get("method")
    if not method or not isinstance(method, str):
        raise TargetParseError("target: required method is missing")
    url = raw.get("url")
    if not url or not isinstance(url, str):
        raise TargetParseError("target: required url is missing")

    line_body = _decode_body(raw.get("body"))

    merged: Dict[str, List[str]] = {}
    for name, values in _parse_line_header(raw.get("header")).items():
        merged.setdefault(name, []).extend(values)
    for name, values in header.items():
        merged.setdefault(name, []).extend(values)

    return Target(
        method=method,
        url=url,
        body=line_body if line_body else body,
        header=merged,
    )


def _decode_body(raw) -> bytes:
    # Bodies are base64 encoded, matching the vegeta JSON target format.
    if raw is None or raw == "":
        return b""
    if not isinstance(raw, str):
        raise TargetParseError("target body must be a base64 string")
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise TargetParseError(f"target body is not valid base64: {exc}") from exc


def _parse_line_header(raw) -> Dict[str, List[str]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise TargetParseError("target header must be an object")
    parsed = {}
    for name, values in raw.items():
        if isinstance(values, str):
            values = [values]
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise TargetParseError(f"header {name!r} values must be strings")
        parsed[name] = list(values)
    return parsed


class StaticTargeter:
    """Thread-safe round-robin over a fixed list of targets."""

    def __init__(self, targets: List[Target]):
        self.targets = list(targets)
        self._next = 0
        self._lock = threading.Lock()

    def __call__(self) -> Target:
        if not self.targets:
            raise NoTargetsError("no targets to attack")
        with self._lock:
            target = self.targets[self._next]
            self._next = (self._next + 1) % len(self.targets)
        return target

    def __len__(self) -> int:
        return len(self.targets)
