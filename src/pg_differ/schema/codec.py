"""Value codec between declarative values and PostgreSQL SQL text.

Encodes declarative column defaults and seed values into literal SQL,
and decodes the default expressions PostgreSQL reports in its catalog
back into values that can be compared with the declared ones.

A string ending in ``::sql`` is a raw SQL expression: the suffix is
stripped and the rest is emitted verbatim.  ``decode_value`` uses the
same suffix to mark an expression it could not parse (an *opaque*
value), so that the differ compares it as text.

Usage:
    from pg_differ.schema.codec import decode_value, encode_value

    encode_value("O'Brien")               # "'O''Brien'"
    encode_value("now()::sql")            # "now()"
    decode_value("'abc'", "varchar(20)")  # "abc"
    decode_value("now()", "timestamp")    # "now()::sql"
"""

import json
import re
from enum import Enum
from typing import Any

RAW_SUFFIX = "::sql"

DEFAULT_SCHEMA = "public"

TYPE_ALIASES: dict[str, str] = {
    "character varying": "varchar",
    "character": "char",
    "bpchar": "char",
    "int": "integer",
    "int4": "integer",
    "int2": "smallint",
    "int8": "bigint",
    "bool": "boolean",
    "float4": "real",
    "float8": "double precision",
    "decimal": "numeric",
    "bit varying": "varbit",
    "timestamp without time zone": "timestamp",
    "timestamp with time zone": "timestamptz",
    "time without time zone": "time",
    "time with time zone": "timetz",
}


class TypeGroup(str, Enum):
    """Groups of types whose default values decode the same way."""

    JSON = "json"
    INTEGER = "integer"
    BOOLEAN = "boolean"


TYPE_GROUPS: dict[TypeGroup, frozenset[str]] = {
    TypeGroup.JSON: frozenset({"json", "jsonb"}),
    TypeGroup.INTEGER: frozenset({"smallint", "integer", "bigint"}),
    TypeGroup.BOOLEAN: frozenset({"boolean"}),
}

# Array brackets and length/precision modifiers: varchar(255), numeric(10,2), int[], int[3]
_TYPE_MODIFIERS = re.compile(r"\[\d*\]|\([^)]*\)")

# nextval('name'::regclass) with no schema in the captured name
_UNQUALIFIED_NEXTVAL = re.compile(r"(?<=nextval\(')(?=[^.']*')")

# ::type or ::type[] closing the whole expression
_TERMINAL_CAST = re.compile(r"::[a-zA-Z_][\w ]*(?:\[\d*\]){0,2}$")

_QUOTED_LITERAL = re.compile(r"(E?)'((?:[^']|'')*)'", re.DOTALL)

_INTEGER_LITERAL = re.compile(r"-?\d+")


def trim_type(type_: str) -> str:
    """Strip modifiers from a type and collapse whitespace.

    Example:
        >>> trim_type("timestamp(3) with time zone")
        'timestamp with time zone'
    """
    return " ".join(_TYPE_MODIFIERS.sub("", type_).split()).lower()


def normalize_type(type_: str) -> str:
    """Return the canonical spelling of a column type.

    Modifiers are stripped, the bare name is resolved through
    ``TYPE_ALIASES`` and the modifiers are appended again in their
    original order and text.

    Example:
        >>> normalize_type("character varying(255)")
        'varchar(255)'
        >>> normalize_type("INT4[]")
        'integer[]'
    """
    modifiers = _TYPE_MODIFIERS.findall(type_)
    bare = trim_type(type_)
    bare = TYPE_ALIASES.get(bare, bare)
    return bare + "".join(modifiers)


def get_type_group(type_: str | None) -> TypeGroup | None:
    """Classify a type into a ``TypeGroup`` (``None`` for everything else)."""
    if not type_:
        return None
    bare = trim_type(normalize_type(type_))
    for group, members in TYPE_GROUPS.items():
        if bare in members:
            return group
    return None


def quote_literal(value: str) -> str:
    """Quote a string as a PostgreSQL literal.

    Single quotes and backslashes are doubled.  When at least one
    backslash was present the literal gets the ``E`` prefix, so it is
    read with C-style escapes whatever ``standard_conforming_strings``
    is set to.

    Example:
        >>> quote_literal("O'Brien")
        "'O''Brien'"
    """
    has_backslash = False
    chunks = ["'"]
    for char in value:
        if char == "'":
            chunks.append("''")
        elif char == "\\":
            chunks.append("\\\\")
            has_backslash = True
        else:
            chunks.append(char)
    chunks.append("'")

    quoted = "".join(chunks)
    return "E" + quoted if has_backslash else quoted


def encode_value(value: Any) -> str | None:
    """Encode a declarative value as SQL text.

    Args:
        value: ``None``, a bool, a number, a string (``::sql`` suffix for
            raw expressions) or a JSON-serializable dict/list.

    Returns:
        SQL text, or ``None`` when *value* is ``None``.

    Raises:
        TypeError: For values with no SQL rendering.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        if value.endswith(RAW_SUFFIX):
            return value[: -len(RAW_SUFFIX)]
        return quote_literal(value)
    if isinstance(value, (dict, list)):
        return quote_literal(json.dumps(value))
    raise TypeError(f"Cannot encode value of type {type(value).__name__}: {value!r}")


def _unquote(value: str) -> str | None:
    """Return the payload of a single-quoted literal, or ``None``."""
    match = _QUOTED_LITERAL.fullmatch(value)
    if match is None:
        return None
    escaped, payload = match.groups()
    payload = payload.replace("''", "'")
    if escaped:
        payload = payload.replace("\\\\", "\\")
    return payload


def decode_value(value: Any, type_: str | None) -> Any:
    """Decode a catalog default expression into a comparable value.

    Anything that cannot be parsed for the column's type group is
    returned as an opaque raw expression (``value + "::sql"``).

    Args:
        value: Default expression with its terminal cast already removed
            (see ``default_value_information_schema``).
        type_: Column type, used to pick the type group.

    Returns:
        Parsed JSON for JSON types, ``int`` for integer types, ``bool``
        for booleans, the unquoted string for other quoted literals, or
        the opaque marker string.
    """
    if not isinstance(value, str):
        return value

    opaque = f"{value}{RAW_SUFFIX}"
    group = get_type_group(type_)

    if group is TypeGroup.JSON:
        payload = _unquote(value)
        if payload is None:
            return opaque
        try:
            return json.loads(payload)
        except ValueError:
            return opaque

    if group is TypeGroup.INTEGER:
        candidate = _unquote(value)
        if candidate is None:
            candidate = value
        if _INTEGER_LITERAL.fullmatch(candidate):
            return int(candidate)
        return opaque

    if group is TypeGroup.BOOLEAN:
        if value == "true":
            return True
        if value == "false":
            return False
        return opaque

    payload = _unquote(value)
    return opaque if payload is None else payload


def default_value_information_schema(value: Any, default_schema: str = DEFAULT_SCHEMA) -> Any:
    """Normalize a default expression as rendered by the catalog.

    Adds *default_schema* to an unqualified ``nextval('name'...)`` and
    strips a type cast that terminates the whole expression.

    Example:
        >>> default_value_information_schema("nextval('seq'::regclass)")
        "nextval('public.seq'::regclass)"
        >>> default_value_information_schema("'abc'::character varying")
        "'abc'"
    """
    if not isinstance(value, str):
        return value
    value = _UNQUALIFIED_NEXTVAL.sub(f"{default_schema}.", value)
    return _TERMINAL_CAST.sub("", value)


def normalize_default(value: Any, type_: str, default_schema: str = DEFAULT_SCHEMA) -> str | None:
    """Bring a catalog default into the encoded form the normalizer produces."""
    if value is None:
        return None
    expression = default_value_information_schema(value, default_schema)
    return encode_value(decode_value(expression, type_))


def same_default(left: str | None, right: str | None, type_: str) -> bool:
    """Compare two encoded defaults of a column of *type_*.

    JSON defaults compare as parsed documents: the server stores ``jsonb``
    keys in its own order.
    """
    if left == right:
        return True
    if left is None or right is None:
        return False
    if get_type_group(type_) is TypeGroup.JSON:
        return decode_value(left, type_) == decode_value(right, type_)
    return False


def _is_wrapped(text: str) -> bool:
    """True if the whole of *text* sits inside one pair of parentheses."""
    if not (text.startswith("(") and text.endswith(")")):
        return False
    depth = 0
    for index, char in enumerate(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0 and index != len(text) - 1:
                return False
    return depth == 0


def check_condition(definition: str) -> str:
    """Extract a check condition, dropping ``CHECK`` and outer parentheses.

    Example:
        >>> check_condition("CHECK ((price > 0))")
        'price > 0'
    """
    condition = definition.strip()
    match = re.fullmatch(r"CHECK\s*(\(.*\))(?:\s+NOT VALID)?", condition, re.IGNORECASE | re.DOTALL)
    if match:
        condition = match.group(1).strip()
    while _is_wrapped(condition):
        condition = condition[1:-1].strip()
    return condition


def separate_schema(name: str) -> tuple[str | None, str]:
    """Split ``schema.name`` into its parts (schema is ``None`` when absent)."""
    schema, _, bare = name.rpartition(".")
    return (schema or None), bare


def qualify(name: str, default_schema: str = DEFAULT_SCHEMA) -> str:
    """Return ``schema.name``, filling in *default_schema* when absent."""
    schema, bare = separate_schema(name)
    return f"{schema or default_schema}.{bare}"
