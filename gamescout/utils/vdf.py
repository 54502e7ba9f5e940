"""Text VDF (KeyValues) utilities built on the ValvePython vdf library.

Launcher manifests in the wild are frequently hand-edited or truncated, so
parsing falls back to a tolerant token scanner whenever vdf rejects the
input. Callers validate required fields themselves.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import vdf

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(
    r'(?P<comment>//[^\n]*)'
    r'|"(?P<quoted>(?:[^"\\\n]|\\.)*)"?'
    r'|(?P<open>\{)'
    r'|(?P<close>\})'
    r'|(?P<bare>[^\s{}"]+)'
)

_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', 'v': '\v', 'b': '\b', 'f': '\f', 'a': '\a'}


def _unescape(value: str) -> str:
    return re.sub(r'\\(.)', lambda m: _ESCAPES.get(m.group(1), m.group(1)), value)


def _parse_lenient(text: str) -> Dict[str, Any]:
    """Best-effort parse that keeps whatever structure was recognised."""
    root: Dict[str, Any] = {}
    stack: List[Dict[str, Any]] = [root]
    key: Optional[str] = None

    for match in _TOKEN_RE.finditer(text):
        kind = match.lastgroup
        if kind == 'comment':
            continue

        current = stack[-1]
        if kind == 'open':
            block_key = key if key is not None else ''
            child = current.get(block_key)
            if not isinstance(child, dict):
                child = {}
                current[block_key] = child
            stack.append(child)
            key = None
        elif kind == 'close':
            if len(stack) > 1:
                stack.pop()
            key = None
        else:
            token = match.group(kind)
            if kind == 'bare' and token.startswith('[') and token.endswith(']'):
                # platform conditional, e.g. [$WIN32]
                continue
            token = _unescape(token)
            if key is None:
                key = token
            else:
                if not isinstance(current.get(key), dict):
                    current[key] = token
                key = None

    return root


def parse_keyvalues(text: str) -> Dict[str, Any]:
    """
    Parse KeyValues text into nested dicts of strings.

    Never raises for str input: malformed text yields the partial structure
    recovered by the tolerant scanner.
    """
    try:
        return vdf.loads(text)
    except (SyntaxError, ValueError) as e:
        logger.debug(f"[VDF] Strict parse failed ({e}), using tolerant parser")
        return _parse_lenient(text)


def load_keyvalues_file(path: str) -> Dict[str, Any]:
    """Read and parse a KeyValues file. OSError propagates to the caller."""
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        return parse_keyvalues(f.read())


def get_section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    """
    Case-insensitive block lookup.

    Blocks whose keys differ only by case (AppState / appstate) are merged;
    the first occurrence of a field wins.
    """
    merged: Dict[str, Any] = {}
    wanted = name.lower()
    for key, value in data.items():
        if key.lower() == wanted and isinstance(value, dict):
            for field, field_value in value.items():
                merged.setdefault(field, field_value)
    return merged


def get_value(data: Dict[str, Any], name: str, default: Optional[str] = None) -> Optional[str]:
    """Case-insensitive scalar lookup."""
    wanted = name.lower()
    for key, value in data.items():
        if key.lower() == wanted and isinstance(value, str):
            return value
    return default


def parse_library_folders(text: str) -> List[str]:
    """
    Extract library paths from libraryfolders.vdf.

    Handles both the current layout ("0" { "path" "..." }) and the legacy
    one where numbered keys map straight to a path string.
    """
    section = get_section(parse_keyvalues(text), 'libraryfolders')
    paths = []
    for key, value in section.items():
        if isinstance(value, dict):
            path = get_value(value, 'path')
        elif key.isdigit():
            path = value
        else:
            continue
        if path and path not in paths:
            paths.append(path)
    return paths
