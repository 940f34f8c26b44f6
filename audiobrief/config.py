"""
AudioBrief Configuration

Responsibilities:
- ProcessingConfig: caller-supplied output policy (format, naming, storage, alerts)
- AnalysisSettings: service credentials and DSP thresholds
- Serialization for CLI config files and reports

Invariants:
- Immutable once constructed
- The core reads configuration, it never mutates it
- Storage and alert fields are passed through, not validated
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


# =============================================================================
# Output Policy Enums
# =============================================================================


class AudioFormat(str, Enum):
    MP3 = "MP3"
    WAV = "WAV"
    FLAC = "FLAC"


class AudioBitrate(str, Enum):
    LOW = "128k"
    MEDIUM = "192k"
    HIGH = "320k"


class RetentionPeriod(str, Enum):
    WEEK = "7d"
    MONTH = "1m"
    QUARTER = "3m"
    YEAR = "1y"
    FOREVER = "forever"


DEFAULT_NAMING_PATTERN = "%textNonObligatoire%_%jour%-%mois%_%heure%h%minutes%"
DEFAULT_STORAGE_PATH = "/var/www/broadcasts/"


def _coerce_enum(enum_cls: type[Enum], value: Any) -> Enum:
    """Accept an enum member, its value, or its name (case-insensitive)."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        pass
    if isinstance(value, str):
        for member in enum_cls:
            if member.name == value.upper() or str(member.value).lower() == value.lower():
                return member
    valid = [m.value for m in enum_cls]
    raise ValueError(f"Invalid {enum_cls.__name__}: {value!r}. Valid: {valid}")


# =============================================================================
# ProcessingConfig
# =============================================================================


@dataclass(frozen=True)
class ProcessingConfig:
    """
    User-supplied processing policy.

    Attributes:
        format: Target container/codec; its lower-cased value is the output extension
        bitrate: Target bitrate (transcoding collaborator)
        naming_pattern: Token pattern expanded by the naming stage
        alert_email: Address notified on technical silence ("" disables alerts)
        storage_path: Destination directory (storage collaborator)
        retention_period: Retention policy (storage collaborator)
        max_duration_minutes: Cut length for transcoding, 0 for unlimited
        smart_extend: Avoid cutting during active speech
    """
    format: AudioFormat = AudioFormat.MP3
    bitrate: AudioBitrate = AudioBitrate.MEDIUM
    naming_pattern: str = DEFAULT_NAMING_PATTERN
    alert_email: str = ""
    storage_path: str = DEFAULT_STORAGE_PATH
    retention_period: RetentionPeriod = RetentionPeriod.MONTH
    max_duration_minutes: int = 0
    smart_extend: bool = True

    @property
    def extension(self) -> str:
        return self.format.value.lower()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "format": self.format.value,
            "bitrate": self.bitrate.value,
            "naming_pattern": self.naming_pattern,
            "alert_email": self.alert_email,
            "storage_path": self.storage_path,
            "retention_period": self.retention_period.value,
            "max_duration_minutes": self.max_duration_minutes,
            "smart_extend": self.smart_extend,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProcessingConfig":
        """
        Deserialize from dictionary.

        Missing keys take their defaults. Enum fields accept value or name.

        Raises:
            ValueError: On an unknown key or invalid enum value,
                or when data is not a mapping.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Config must be a JSON object, got {type(data).__name__}")
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

        defaults = cls()
        return cls(
            format=_coerce_enum(AudioFormat, data.get("format", defaults.format)),
            bitrate=_coerce_enum(AudioBitrate, data.get("bitrate", defaults.bitrate)),
            naming_pattern=str(data.get("naming_pattern", defaults.naming_pattern)),
            alert_email=str(data.get("alert_email", defaults.alert_email)),
            storage_path=str(data.get("storage_path", defaults.storage_path)),
            retention_period=_coerce_enum(
                RetentionPeriod, data.get("retention_period", defaults.retention_period)
            ),
            max_duration_minutes=int(data.get("max_duration_minutes", defaults.max_duration_minutes)),
            smart_extend=bool(data.get("smart_extend", defaults.smart_extend)),
        )


# =============================================================================
# AnalysisSettings
# =============================================================================

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"


@dataclass(frozen=True)
class AnalysisSettings:
    """
    Settings injected into the pipeline constructor.

    Attributes:
        api_key: Semantic service credential (None disables the service call)
        model: Model identifier
        endpoint: REST base URL of the service
        service_timeout: Upper bound, in seconds, on the semantic call
        silence_threshold: Absolute amplitude below which a sample is silent (~ -40 dBFS)
        min_silence_seconds: Runs must be strictly longer than this to be reported
        summary_language: Language requested for the written summary
    """
    api_key: str | None = None
    model: str = DEFAULT_MODEL
    endpoint: str = DEFAULT_ENDPOINT
    service_timeout: float = 120.0
    silence_threshold: float = 0.01
    min_silence_seconds: float = 2.0
    summary_language: str = "French"

    def __post_init__(self):
        if self.service_timeout <= 0:
            raise ValueError(f"service_timeout must be > 0, got {self.service_timeout}")
        if not 0.0 < self.silence_threshold <= 1.0:
            raise ValueError(f"silence_threshold must be in (0, 1], got {self.silence_threshold}")
        if self.min_silence_seconds < 0:
            raise ValueError(f"min_silence_seconds must be >= 0, got {self.min_silence_seconds}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AnalysisSettings":
        """
        Build settings from environment variables.

        Reads AUDIOBRIEF_API_KEY (or GEMINI_API_KEY), AUDIOBRIEF_MODEL,
        AUDIOBRIEF_ENDPOINT, AUDIOBRIEF_TIMEOUT, AUDIOBRIEF_SILENCE_THRESHOLD,
        AUDIOBRIEF_MIN_SILENCE_SECONDS, AUDIOBRIEF_SUMMARY_LANGUAGE. Unset variables
        keep their defaults.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            api_key=env.get("AUDIOBRIEF_API_KEY") or env.get("GEMINI_API_KEY") or None,
            model=env.get("AUDIOBRIEF_MODEL", defaults.model),
            endpoint=env.get("AUDIOBRIEF_ENDPOINT", defaults.endpoint),
            service_timeout=float(env.get("AUDIOBRIEF_TIMEOUT", defaults.service_timeout)),
            silence_threshold=float(
                env.get("AUDIOBRIEF_SILENCE_THRESHOLD", defaults.silence_threshold)
            ),
            min_silence_seconds=float(
                env.get("AUDIOBRIEF_MIN_SILENCE_SECONDS", defaults.min_silence_seconds)
            ),
            summary_language=env.get("AUDIOBRIEF_SUMMARY_LANGUAGE", defaults.summary_language),
        )
