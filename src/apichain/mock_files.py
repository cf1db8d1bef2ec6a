"""Loading mock maps from JSON or YAML files.

A mock file is a single object whose keys are mock map keys
(``"GET /users"`` for :class:`~apichain.plugins.rest_mock.RestMockPlugin`,
a URL for :class:`~apichain.plugins.sse_mock.SseMockPlugin`) and whose
values are the static data to answer with::

    GET /users:
      - id: "1"
        name: John
    GET /users/:id:
      id: "1"
      name: John
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Union

import yaml

from apichain.exceptions import ConfigurationError


def load_mock_file(path: Union[str, Path]) -> dict[str, Any]:
    """Load a mock map from a ``.json``, ``.yaml`` or ``.yml`` file.

    Files with any other extension are tried as JSON, then YAML.

    Raises:
        ConfigurationError: If the file is missing, unreadable, not an
            object, or cannot be parsed.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise ConfigurationError(f"Mock file not found: {path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Failed to read mock file {path}: {exc}") from exc

    suffix = file_path.suffix.lower()
    hint = ""
    if suffix == ".json":
        hint = "json"
    elif suffix in (".yaml", ".yml"):
        hint = "yaml"

    data = _parse_content(content, hint=hint, source=str(path))
    bad_keys = [key for key in data if not isinstance(key, str)]
    if bad_keys:
        raise ConfigurationError(f"Mock file {path} has non-string keys: {bad_keys!r}")
    return data


def _parse_content(content: str, hint: str, source: str) -> dict[str, Any]:
    """Parse *content* as JSON (unless hinted as YAML), falling back to YAML."""
    if not content.strip():
        return {}

    json_error: Exception | None = None
    if hint != "yaml":
        try:
            return _require_object(json.loads(content), source)
        except json.JSONDecodeError as exc:
            if hint == "json":
                raise ConfigurationError(f"Invalid JSON in mock file {source}: {exc}") from exc
            json_error = exc

    try:
        return _require_object(yaml.safe_load(content), source)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse mock file {source} as JSON or YAML"
        if json_error:
            msg += f"\n  JSON error: {json_error}"
        msg += f"\n  YAML error: {exc}"
        raise ConfigurationError(msg) from exc


def _require_object(result: Any, source: str) -> dict[str, Any]:
    if result is None:
        return {}
    if not isinstance(result, dict):
        raise ConfigurationError(
            f"Mock file {source} must contain an object (got {type(result).__name__})"
        )
    return result
