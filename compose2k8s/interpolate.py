"""
Variable interpolation for compose documents.

Supports ``${VAR}``, ``${VAR:-default}``, bare ``$VAR`` and ``$$`` escapes,
plus parsing of ``.env`` style files.
"""

from typing import Any, Dict, Mapping


def parse_env_file(content: str) -> Dict[str, str]:
    """
    Parse ``.env`` file content into a dict.

    Blank lines and ``#`` comments are skipped. A line without ``=`` declares
    the key with an empty value. Matching surrounding quotes are stripped.
    """
    result: Dict[str, str] = {}

    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        if "=" not in stripped:
            result[stripped] = ""
            continue

        key, value = stripped.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]

        result[key] = value

    return result


def _is_name_start(ch: str) -> bool:
    return ch == "_" or ("a" <= ch <= "z") or ("A" <= ch <= "Z")


def _is_name_char(ch: str) -> bool:
    return _is_name_start(ch) or ch.isdigit()


def _find_closing_brace(value: str, start: int) -> int:
    """Return index of the ``}`` closing a group opened just before ``start``, or -1."""
    depth = 1
    i = start
    while i < len(value):
        if value[i] == "{":
            depth += 1
        elif value[i] == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def interpolate_variables(value: str, env: Mapping[str, str]) -> str:
    """
    Substitute variables in a single string.

    Defaults in ``${VAR:-default}`` may contain balanced braces and are
    interpolated themselves. Substituted values are never re-scanned.
    Unset variables without a default become the empty string.
    """
    out = []
    i = 0
    length = len(value)

    while i < length:
        ch = value[i]
        if ch != "$" or i + 1 >= length:
            out.append(ch)
            i += 1
            continue

        nxt = value[i + 1]

        if nxt == "$":
            out.append("$")
            i += 2
            continue

        if nxt == "{":
            j = i + 2
            while j < length and value[j] not in (":", "}"):
                j += 1
            name = value[i + 2:j]

            if j < length and value[j] == "}":
                out.append(env.get(name, ""))
                i = j + 1
                continue

            if j + 1 < length and value[j] == ":" and value[j + 1] == "-":
                end = _find_closing_brace(value, j + 2)
                if end != -1:
                    if name in env:
                        out.append(env[name])
                    else:
                        out.append(interpolate_variables(value[j + 2:end], env))
                    i = end + 1
                    continue

            # Malformed or unterminated, keep literally
            out.append(ch)
            i += 1
            continue

        if _is_name_start(nxt):
            j = i + 1
            while j < length and _is_name_char(value[j]):
                j += 1
            out.append(env.get(value[i + 1:j], ""))
            i = j
            continue

        out.append(ch)
        i += 1

    return "".join(out)


def interpolate_all(obj: Any, env: Mapping[str, str]) -> Any:
    """
    Interpolate every string value in a nested structure.

    Mapping keys and non-string scalars are left untouched, so the
    structural types of the document are preserved.
    """
    if isinstance(obj, str):
        return interpolate_variables(obj, env)
    if isinstance(obj, list):
        return [interpolate_all(item, env) for item in obj]
    if isinstance(obj, dict):
        return {key: interpolate_all(val, env) for key, val in obj.items()}
    return obj
