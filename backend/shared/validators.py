"""Settings helpers for list-valued environment variables."""

import json
from typing import Any

from pydantic.fields import FieldInfo
from pydantic_settings import EnvSettingsSource


def parse_string_list(value: str | list[str] | tuple[str, ...], *, allow_empty: bool = False) -> list[str]:
    """Parse a list of strings from an environment variable or config value.

    Accepts a list, a JSON array string ('["a","b"]') or a comma-separated
    string ('a,b'). Blank entries are dropped. Raises ValueError for malformed
    JSON, and for an empty result unless allow_empty is set.
    """
    if isinstance(value, (list, tuple)):
        items = [item.strip() for item in value if item.strip()]
    elif value.strip().startswith("["):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValueError("JSON value must be an array of strings")
        items = [item.strip() for item in parsed if item.strip()]
    else:
        items = [item.strip() for item in value.split(",") if item.strip()]

    if not allow_empty and not items:
        raise ValueError("String list value must not be empty")
    return items


STRING_LIST_FIELDS = frozenset({"cors_origins", "disallowed_terms"})


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env source that hands string-list fields to validators as raw strings.

    pydantic-settings JSON-decodes list-typed env vars before validators run,
    which rejects the comma-separated form. Passing the raw string through lets
    parse_string_list accept both.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in STRING_LIST_FIELDS and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
