# src/parsing/repair_parser.py — v1
"""Structured-response repair parser shared by every phase.

Generation backends are asked for JSON but routinely wrap it in prose or
code fences, leave trailing commas before a closer, or stop mid-structure when
they hit their output cap. ``parse`` recovers the longest structurally valid
prefix and reports whether recovery was needed:

  1. strip wrappers (code fences, leading prose, trailing prose after a
     complete value);
  2. drop separators sitting immediately before a closing brace/bracket;
  3. if the text still does not parse, cut it back to the last complete
     member of the outermost container and re-close that container;
  4. if nothing survives, return the typed default with ``degraded=True``.

``parse`` never raises.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from intentphrase.core.errors import MalformedResponseError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?(.*?)(?:```|\Z)", re.DOTALL)
_OPENERS = "{["
_CLOSERS = {"{": "}", "[": "]"}
_MAX_STARTS = 32


@dataclass(frozen=True)
class ParseResult:
    """Parsed value plus recovery flag."""

    value: Any
    degraded: bool
    repairs: tuple[str, ...] = field(default_factory=tuple)


@dataclass
class _ScanState:
    stack: list[str] = field(default_factory=list)
    first_close: int | None = None
    member_ends: list[int] = field(default_factory=list)
    mismatch_at: int | None = None


def parse(
    raw_text: str | None,
    default: Any = None,
    expect: type | tuple[type, ...] | None = None,
) -> ParseResult:
    """Parse backend output into a JSON value, repairing what can be repaired.

    Args:
        raw_text: Raw text returned by the generation backend.
        default: Value returned when nothing parses. Deep-copied per call.
            When None and ``expect`` is ``dict`` or ``list``, an empty
            instance of that type is used.
        expect: Optional type (or tuple of types) the top-level value must
            have; anything else is treated as unparseable.

    Returns:
        ParseResult with ``degraded=False`` only for a clean parse.
    """
    try:
        value, repairs = parse_strict(raw_text)
    except MalformedResponseError as exc:
        logger.warning("Unrecoverable structured response, using default: %s", exc)
        return ParseResult(_typed_default(default, expect), degraded=True, repairs=("default",))

    if expect is not None and not isinstance(value, expect):
        logger.warning(
            "Structured response has type %s, expected %s; using default",
            type(value).__name__, expect,
        )
        return ParseResult(
            _typed_default(default, expect), degraded=True, repairs=repairs + ("default",)
        )

    degraded = "truncated" in repairs
    if degraded:
        logger.info("Recovered truncated structured response (repairs=%s)", ",".join(repairs))
    return ParseResult(value, degraded=degraded, repairs=repairs)


def parse_strict(raw_text: str | None) -> tuple[Any, tuple[str, ...]]:
    """Run the repair steps and return ``(value, repairs)``.

    Raises:
        MalformedResponseError: If no structurally valid prefix exists.
    """
    if raw_text is None or not raw_text.strip():
        raise MalformedResponseError("empty response")

    try:
        return json.loads(raw_text), ()
    except json.JSONDecodeError:
        pass

    repairs: list[str] = []
    text = strip_wrappers(raw_text)
    if text != raw_text.strip():
        repairs.append("unwrapped")

    cleaned = remove_trailing_separators(text)
    if cleaned != text:
        repairs.append("trailing_separators")
    text = cleaned

    try:
        return json.loads(text), tuple(repairs)
    except json.JSONDecodeError:
        pass

    for candidate in _prefix_candidates(text):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        repairs.append("truncated")
        return value, tuple(repairs)

    raise MalformedResponseError(f"no valid structured prefix in {len(raw_text)} chars")


def strip_wrappers(text: str) -> str:
    """Remove code fences, leading prose and trailing prose around a value."""
    text = text.strip()

    fence = _FENCE_RE.search(text)
    if fence:
        text = fence.group(1).strip()

    starts = [i for i, ch in enumerate(text) if ch in _OPENERS][:_MAX_STARTS]
    if not starts:
        return text

    # Prose may hold its own brackets ("Note {x}: {...}"); skip any span that
    # closes without being valid JSON and take the first that is, or the first
    # that never closes (truncated output).
    for start in starts:
        candidate = text[start:]
        state = _scan(candidate)
        if state.mismatch_at is not None:
            continue
        if state.first_close is None:
            return candidate
        candidate = candidate[: state.first_close]
        if _is_json(remove_trailing_separators(candidate)):
            return candidate

    text = text[starts[0] :]
    state = _scan(text)
    if state.first_close is not None:
        text = text[: state.first_close]
    return text


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except json.JSONDecodeError:
        return False
    return True


def remove_trailing_separators(text: str) -> str:
    """Drop commas that sit directly (modulo whitespace) before a closer.

    String contents are left untouched.
    """
    out: list[str] = []
    in_string = False
    escape = False
    n = len(text)
    i = 0
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            i += 1
            continue

        if ch == '"':
            in_string = True
        elif ch == ",":
            j = i + 1
            while j < n and text[j].isspace():
                j += 1
            if j < n and text[j] in "}]":
                i += 1
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def _scan(text: str) -> _ScanState:
    """Walk the text tracking nesting depth outside of strings.

    Records where the outermost container closes and every index at which a
    member of the outermost container is complete.
    """
    state = _ScanState()
    in_string = False
    escape = False

    for i, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            state.stack.append(ch)
        elif ch in "}]":
            if not state.stack or _CLOSERS[state.stack[-1]] != ch:
                state.mismatch_at = i
                break
            state.stack.pop()
            if not state.stack:
                state.first_close = i + 1
                break
            if len(state.stack) == 1:
                state.member_ends.append(i + 1)
        elif ch == "," and len(state.stack) == 1:
            state.member_ends.append(i)

    return state


def _prefix_candidates(text: str) -> list[str]:
    """Re-closed prefixes of the outermost container, longest first."""
    state = _scan(text)
    if not text or text[0] not in _OPENERS:
        return []
    closer = _CLOSERS[text[0]]
    candidates: list[str] = []
    for end in reversed(state.member_ends):
        prefix = text[:end].rstrip().rstrip(",").rstrip()
        candidates.append(prefix + closer)
    return candidates


def _typed_default(default: Any, expect: type | tuple[type, ...] | None) -> Any:
    if default is not None:
        return copy.deepcopy(default)
    if expect is dict:
        return {}
    if expect is list:
        return []
    return None
