"""JSON-compatible typing aliases for generic OpenAPI document trees."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Union

type JSONScalar = Union[str, int, float, bool, None]
type JSONValue = JSONScalar | Sequence[JSONValue] | Mapping[str, JSONValue]
type JSONObject = Mapping[str, JSONValue]
