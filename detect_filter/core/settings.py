"""
Filter settings — the configuration surface exposed to the host.
"""
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional

from detect_filter.core.preprocessor import PreprocessVariant
from detect_filter.utils.config import Config
from detect_filter.utils.constants import (
    S_MODEL_PATH, S_CONFIDENCE_THRESHOLD, S_LOG, S_PREPROCESS,
    DEFAULT_MODEL_PATH, DEFAULT_CONFIDENCE_THRESHOLD, DEFAULT_LOG, DEFAULT_PREPROCESS,
    MIN_CONFIDENCE_THRESHOLD, MAX_CONFIDENCE_THRESHOLD, CONFIDENCE_THRESHOLD_STEP,
    MODEL_FILE_FILTER,
)


@dataclass(frozen=True)
class PropertySpec:
    """Describes one host-visible option (type, default, range)."""
    key: str
    kind: str
    default: Any
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    step: Optional[float] = None
    file_filter: str = ""
    choices: tuple = ()


PROPERTIES: List[PropertySpec] = [
    PropertySpec(S_CONFIDENCE_THRESHOLD, "float", DEFAULT_CONFIDENCE_THRESHOLD,
                 MIN_CONFIDENCE_THRESHOLD, MAX_CONFIDENCE_THRESHOLD, CONFIDENCE_THRESHOLD_STEP),
    PropertySpec(S_MODEL_PATH, "path", DEFAULT_MODEL_PATH, file_filter=MODEL_FILE_FILTER),
    PropertySpec(S_LOG, "bool", DEFAULT_LOG),
    PropertySpec(S_PREPROCESS, "list", DEFAULT_PREPROCESS,
                 choices=tuple(v.value for v in PreprocessVariant)),
]


def clamp_threshold(value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE_THRESHOLD
    return min(max(value, MIN_CONFIDENCE_THRESHOLD), MAX_CONFIDENCE_THRESHOLD)


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.lower() in ('true', '1', 'yes', 'on')
    return bool(value)


@dataclass(frozen=True)
class FilterSettings:
    model_path: str = DEFAULT_MODEL_PATH
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    log: bool = DEFAULT_LOG
    preprocess: PreprocessVariant = PreprocessVariant(DEFAULT_PREPROCESS)

    @classmethod
    def defaults(cls) -> Dict[str, Any]:
        """Default value for every option, keyed like the host settings."""
        return {prop.key: prop.default for prop in PROPERTIES}

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "FilterSettings":
        """Build settings from host key/value data, filling defaults and clamping."""
        values = cls.defaults()
        values.update({k: v for k, v in (data or {}).items() if v is not None})
        return cls(
            model_path=str(values[S_MODEL_PATH] or ""),
            confidence_threshold=clamp_threshold(values[S_CONFIDENCE_THRESHOLD]),
            log=_as_bool(values[S_LOG]),
            preprocess=PreprocessVariant.from_name(values[S_PREPROCESS]),
        )

    @classmethod
    def from_config(cls, config: Config) -> "FilterSettings":
        return cls.from_mapping(config.get('filter', {}))

    def with_changes(self, **changes) -> "FilterSettings":
        if S_CONFIDENCE_THRESHOLD in changes:
            changes[S_CONFIDENCE_THRESHOLD] = clamp_threshold(changes[S_CONFIDENCE_THRESHOLD])
        if S_PREPROCESS in changes:
            changes[S_PREPROCESS] = PreprocessVariant.from_name(changes[S_PREPROCESS])
        return replace(self, **changes)

    def to_mapping(self) -> Dict[str, Any]:
        return {
            S_MODEL_PATH: self.model_path,
            S_CONFIDENCE_THRESHOLD: self.confidence_threshold,
            S_LOG: self.log,
            S_PREPROCESS: self.preprocess.value,
        }
