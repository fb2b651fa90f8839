from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import OptionsError

"""Request-scoped upload options.

Upload requests carry a JSON ``options`` payload with camelCase keys
(``mergeStrategy``, ``strictness``, ``headersMap``, ``preset``, ``owner``) and an
optional top-level ``headersMap`` whose entries override the ones inside
``options``. UploadOptions is the parsed, immutable form of that payload.
"""

__all__ = [
    "MergeStrategy",
    "Strictness",
    "UploadOptions",
]


class MergeStrategy(Enum):
    """What happens when an incoming question matches an existing one.

    - SKIP: leave the existing record alone
    - OVERWRITE: replace the existing record's content, keep its identifier
    - FORCE: always store the incoming question as a new record
    - MERGE: copy only the non-empty incoming fields onto the existing record
    """
    SKIP = "skip"
    OVERWRITE = "overwrite"
    FORCE = "force"
    MERGE = "merge"

    @property
    def mutates_existing(self) -> bool:
        """True for strategies that rewrite persisted records (backup required)."""
        return self in (MergeStrategy.OVERWRITE, MergeStrategy.MERGE)


class Strictness(Enum):
    STRICT = "strict"
    LENIENT = "lenient"


def _parse_enum(enum_cls: type[Enum], raw: Any, key: str) -> Any:
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_cls)  # type: ignore[attr-defined]
        raise OptionsError(f"invalid {key} {raw!r}; expected one of: {allowed}") from e


def _load_json_object(raw: str | Mapping[str, Any] | None, what: str) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise OptionsError(f"{what} is not valid JSON: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise OptionsError(f"{what} must be a JSON object, got {type(data).__name__}")
    return data


def _optional_text(raw: Any) -> str | None:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def _clean_headers_map(raw: Any) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise OptionsError(f"headersMap must be an object, got {type(raw).__name__}")
    out: dict[str, str] = {}
    for key, value in raw.items():
        if value is None or str(value).strip() == "":
            continue
        out[str(key)] = str(value).strip()
    return out


@dataclass(frozen=True)
class UploadOptions:
    """Immutable configuration for one upload."""
    merge_strategy: MergeStrategy = MergeStrategy.SKIP
    strictness: Strictness = Strictness.LENIENT
    headers_map: dict[str, str] = field(default_factory=dict)  # source header -> canonical name
    preset: str | None = None  # question-type tag used for required headers
    owner: str | None = None  # provenance tag recorded on questions and the upload record

    @property
    def is_strict(self) -> bool:
        return self.strictness is Strictness.STRICT

    @classmethod
    def from_payload(
        cls,
        options: str | Mapping[str, Any] | None,
        headers_map: str | Mapping[str, Any] | None = None,
        defaults: Mapping[str, Any] | None = None,
    ) -> UploadOptions:
        """Build options from a request payload.

        Args:
            options: JSON text or mapping with camelCase keys
            headers_map: Optional top-level headersMap (JSON text or mapping);
                merged over ``options.headersMap``
            defaults: Config defaults (snake_case keys: merge_strategy,
                strictness, headers_map) used when the payload omits a value

        Raises:
            OptionsError: for malformed JSON or unknown enum values
        """
        data = _load_json_object(options, "options")
        top_map = _load_json_object(headers_map, "headersMap")
        defaults = defaults or {}

        strategy_raw = data.get("mergeStrategy", defaults.get("merge_strategy", MergeStrategy.SKIP.value))
        strictness_raw = data.get("strictness", defaults.get("strictness", Strictness.LENIENT.value))

        merged_map = _clean_headers_map(defaults.get("headers_map"))
        merged_map.update(_clean_headers_map(data.get("headersMap")))
        merged_map.update(_clean_headers_map(top_map))

        return cls(
            merge_strategy=_parse_enum(MergeStrategy, strategy_raw, "mergeStrategy"),
            strictness=_parse_enum(Strictness, strictness_raw, "strictness"),
            headers_map=merged_map,
            preset=_optional_text(data.get("preset")),
            owner=_optional_text(data.get("owner")),
        )

    def to_dict(self) -> dict[str, Any]:
        """camelCase form, as recorded on the UploadRecord."""
        return {
            "mergeStrategy": self.merge_strategy.value,
            "strictness": self.strictness.value,
            "headersMap": dict(self.headers_map),
            "preset": self.preset,
            "owner": self.owner,
        }
