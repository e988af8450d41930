"""
Configuration Management for voice-proxy.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (PPIO_API_TOKEN, VOICE_SAM_ALTMAN, etc.)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Environment overrides are applied by load_settings() only. A Settings
object built directly from a dict (as the tests do) never reads the
environment.

Example settings.yaml:
    provider:
      api_url: https://api.ppinfra.com/v3/minimax-voice-cloning
      timeout_s: 90
      max_retries: 3

    voices:
      sam_altman: voice-id-1
      wuenda: voice-id-2

    pacing:
      between_calls_s: 2.0
      between_subjects_s: 5.0

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import os
import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Provider: Remote voice-cloning API
        - Chunking: Text splitting parameters
        - Pacing: Sequential delays between upstream calls
        - Store: External subject data store
        - Storage: Blob storage for narrated articles
        - API: REST surface limits
        - Logging: Log level and formatting
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Provider
    # ─────────────────────────────────────────────────────────────────────────
    PROVIDER_API_URL = "https://api.ppinfra.com/v3/minimax-voice-cloning"
    PROVIDER_MODEL = "speech-02-hd"
    PROVIDER_TIMEOUT_S = 90.0           # Single call timeout
    PROVIDER_MAX_RETRIES = 3            # Additional attempts on transport errors
    PROVIDER_BACKOFF_S = 2.0            # Attempt n waits n * backoff
    PROVIDER_MAX_TEXT_CHARS = 500       # Provider-side text limit
    PROVIDER_HEALTH_TIMEOUT_S = 5.0
    MOCK_AUDIO_URL = "https://www2.cs.uic.edu/~i101/SoundFiles/BabyElephantWalk60.wav"
    MOCK_DELAY_MIN_S = 1.0
    MOCK_DELAY_MAX_S = 3.0

    # ─────────────────────────────────────────────────────────────────────────
    # Chunking
    # ─────────────────────────────────────────────────────────────────────────
    CHUNKING_MAX_CHARS = 500

    # ─────────────────────────────────────────────────────────────────────────
    # Pacing
    # ─────────────────────────────────────────────────────────────────────────
    PACING_BETWEEN_CALLS_S = 2.0
    PACING_BETWEEN_SUBJECTS_S = 5.0
    WARMUP_DEFAULT_LIMIT = 5
    WARMUP_MAX_LIMIT = 10

    # ─────────────────────────────────────────────────────────────────────────
    # Store
    # ─────────────────────────────────────────────────────────────────────────
    STORE_BACKEND = "memory"            # memory | supabase
    STORE_COMMENTS_TABLE = "judge_comments"
    STORE_ARTICLES_TABLE = "articles"
    STORE_GENERATIONS_TABLE = "voice_generations"
    STORE_TIMEOUT_S = 10.0

    # ─────────────────────────────────────────────────────────────────────────
    # Blob storage
    # ─────────────────────────────────────────────────────────────────────────
    STORAGE_BACKEND = "local"           # local | supabase
    STORAGE_BASE_DIR = "./storage"
    STORAGE_PUBLIC_BASE_URL = "/audio"
    STORAGE_BUCKET = "voice-articles"

    # ─────────────────────────────────────────────────────────────────────────
    # API
    # ─────────────────────────────────────────────────────────────────────────
    API_CORS_ORIGINS = ["*"]
    API_LIST_MAX_LIMIT = 50
    API_LIST_DEFAULT_LIMIT = 10

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


STORE_BACKENDS = ("memory", "supabase")
STORAGE_BACKENDS = ("local", "supabase")


@dataclass
class ProviderConfig:
    """
    Remote voice-cloning provider configuration.

    Mock mode is active when explicitly enabled or when no API token
    is configured.
    """
    api_url: str = Defaults.PROVIDER_API_URL
    api_token: str = ""
    model: str = Defaults.PROVIDER_MODEL
    need_noise_reduction: bool = True
    need_volume_normalization: bool = True
    timeout_s: float = Defaults.PROVIDER_TIMEOUT_S
    max_retries: int = Defaults.PROVIDER_MAX_RETRIES
    backoff_s: float = Defaults.PROVIDER_BACKOFF_S
    max_text_chars: int = Defaults.PROVIDER_MAX_TEXT_CHARS
    health_timeout_s: float = Defaults.PROVIDER_HEALTH_TIMEOUT_S
    mock_mode: bool = False
    mock_audio_url: str = Defaults.MOCK_AUDIO_URL
    mock_delay_min_s: float = Defaults.MOCK_DELAY_MIN_S
    mock_delay_max_s: float = Defaults.MOCK_DELAY_MAX_S

    @property
    def mock_active(self) -> bool:
        """Whether synthesize() answers without touching the network."""
        return self.mock_mode or not self.api_token


@dataclass
class ChunkingConfig:
    """Text chunking configuration."""
    max_chars: int = Defaults.CHUNKING_MAX_CHARS


@dataclass
class PacingConfig:
    """
    Sequential pacing between upstream calls.

    between_calls_s separates provider calls inside one generation;
    between_subjects_s separates subjects inside a warmup batch.
    """
    between_calls_s: float = Defaults.PACING_BETWEEN_CALLS_S
    between_subjects_s: float = Defaults.PACING_BETWEEN_SUBJECTS_S
    warmup_default_limit: int = Defaults.WARMUP_DEFAULT_LIMIT
    warmup_max_limit: int = Defaults.WARMUP_MAX_LIMIT


@dataclass
class StoreConfig:
    """External data store configuration (subjects and generation records)."""
    backend: str = Defaults.STORE_BACKEND
    url: str = ""
    api_key: str = ""
    fixtures: Optional[str] = None
    comments_table: str = Defaults.STORE_COMMENTS_TABLE
    articles_table: str = Defaults.STORE_ARTICLES_TABLE
    generations_table: str = Defaults.STORE_GENERATIONS_TABLE
    timeout_s: float = Defaults.STORE_TIMEOUT_S


@dataclass
class StorageConfig:
    """Blob storage configuration for narrated article audio."""
    backend: str = Defaults.STORAGE_BACKEND
    base_dir: str = Defaults.STORAGE_BASE_DIR
    public_base_url: str = Defaults.STORAGE_PUBLIC_BASE_URL
    bucket: str = Defaults.STORAGE_BUCKET


@dataclass
class ApiConfig:
    """REST surface configuration."""
    cors_origins: List[str] = field(default_factory=lambda: list(Defaults.API_CORS_ORIGINS))
    list_max_limit: int = Defaults.API_LIST_MAX_LIMIT
    list_default_limit: int = Defaults.API_LIST_DEFAULT_LIMIT


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle, cache status (default)
        3 = VERBOSE: Per-attempt detail, pacing
        4 = DEBUG: Internal state, full tracing
    """
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class ServiceConfig:
    """
    Validated configuration for VoiceService.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.provider.timeout_s)
    """
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    voices: Dict[str, str] = field(default_factory=dict)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    pacing: PacingConfig = field(default_factory=PacingConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create ServiceConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated ServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Provider
        # ─────────────────────────────────────────────────────────────────────
        p_raw = raw.get("provider", {}) or {}
        provider = ProviderConfig(
            api_url=str(p_raw.get("api_url") or Defaults.PROVIDER_API_URL),
            api_token=str(p_raw.get("api_token") or ""),
            model=str(p_raw.get("model") or Defaults.PROVIDER_MODEL),
            need_noise_reduction=bool(p_raw.get("need_noise_reduction", True)),
            need_volume_normalization=bool(p_raw.get("need_volume_normalization", True)),
            timeout_s=float(p_raw.get("timeout_s", Defaults.PROVIDER_TIMEOUT_S)),
            max_retries=int(p_raw.get("max_retries", Defaults.PROVIDER_MAX_RETRIES)),
            backoff_s=float(p_raw.get("backoff_s", Defaults.PROVIDER_BACKOFF_S)),
            max_text_chars=int(p_raw.get("max_text_chars", Defaults.PROVIDER_MAX_TEXT_CHARS)),
            health_timeout_s=float(p_raw.get("health_timeout_s", Defaults.PROVIDER_HEALTH_TIMEOUT_S)),
            mock_mode=_as_bool(p_raw.get("mock_mode", False)),
            mock_audio_url=str(p_raw.get("mock_audio_url") or Defaults.MOCK_AUDIO_URL),
            mock_delay_min_s=float(p_raw.get("mock_delay_min_s", Defaults.MOCK_DELAY_MIN_S)),
            mock_delay_max_s=float(p_raw.get("mock_delay_max_s", Defaults.MOCK_DELAY_MAX_S)),
        )
        cls._validate_positive("provider.timeout_s", provider.timeout_s)
        cls._validate_non_negative("provider.max_retries", provider.max_retries)
        cls._validate_non_negative("provider.backoff_s", provider.backoff_s)
        cls._validate_positive("provider.max_text_chars", provider.max_text_chars)
        cls._validate_positive("provider.health_timeout_s", provider.health_timeout_s)
        cls._validate_non_negative("provider.mock_delay_min_s", provider.mock_delay_min_s)
        if provider.mock_delay_max_s < provider.mock_delay_min_s:
            raise ConfigValidationError(
                "provider.mock_delay_max_s must be >= provider.mock_delay_min_s, "
                f"got {provider.mock_delay_max_s} < {provider.mock_delay_min_s}"
            )

        # ─────────────────────────────────────────────────────────────────────
        # Voices (speaker id -> provider voice id)
        # ─────────────────────────────────────────────────────────────────────
        v_raw = raw.get("voices", {}) or {}
        if not isinstance(v_raw, dict):
            raise ConfigValidationError(f"voices must be a mapping, got {type(v_raw).__name__}")
        voices = {str(k): str(v) for k, v in v_raw.items() if v}

        # ─────────────────────────────────────────────────────────────────────
        # Chunking
        # ─────────────────────────────────────────────────────────────────────
        c_raw = raw.get("chunking", {}) or {}
        chunking = ChunkingConfig(
            max_chars=int(c_raw.get("max_chars", Defaults.CHUNKING_MAX_CHARS)),
        )
        cls._validate_positive("chunking.max_chars", chunking.max_chars)

        # ─────────────────────────────────────────────────────────────────────
        # Pacing
        # ─────────────────────────────────────────────────────────────────────
        pc_raw = raw.get("pacing", {}) or {}
        pacing = PacingConfig(
            between_calls_s=float(pc_raw.get("between_calls_s", Defaults.PACING_BETWEEN_CALLS_S)),
            between_subjects_s=float(pc_raw.get("between_subjects_s", Defaults.PACING_BETWEEN_SUBJECTS_S)),
            warmup_default_limit=int(pc_raw.get("warmup_default_limit", Defaults.WARMUP_DEFAULT_LIMIT)),
            warmup_max_limit=int(pc_raw.get("warmup_max_limit", Defaults.WARMUP_MAX_LIMIT)),
        )
        cls._validate_non_negative("pacing.between_calls_s", pacing.between_calls_s)
        cls._validate_non_negative("pacing.between_subjects_s", pacing.between_subjects_s)
        cls._validate_positive("pacing.warmup_max_limit", pacing.warmup_max_limit)
        cls._validate_range(
            "pacing.warmup_default_limit", pacing.warmup_default_limit, 1, pacing.warmup_max_limit
        )

        # ─────────────────────────────────────────────────────────────────────
        # Store
        # ─────────────────────────────────────────────────────────────────────
        s_raw = raw.get("store", {}) or {}
        store = StoreConfig(
            backend=str(s_raw.get("backend", Defaults.STORE_BACKEND)).lower(),
            url=str(s_raw.get("url") or ""),
            api_key=str(s_raw.get("api_key") or ""),
            fixtures=s_raw.get("fixtures") or None,
            comments_table=str(s_raw.get("comments_table", Defaults.STORE_COMMENTS_TABLE)),
            articles_table=str(s_raw.get("articles_table", Defaults.STORE_ARTICLES_TABLE)),
            generations_table=str(s_raw.get("generations_table", Defaults.STORE_GENERATIONS_TABLE)),
            timeout_s=float(s_raw.get("timeout_s", Defaults.STORE_TIMEOUT_S)),
        )
        cls._validate_choice("store.backend", store.backend, STORE_BACKENDS)
        cls._validate_positive("store.timeout_s", store.timeout_s)
        if store.backend == "supabase" and not store.url:
            raise ConfigValidationError("store.url is required for the supabase backend")

        # ─────────────────────────────────────────────────────────────────────
        # Blob storage
        # ─────────────────────────────────────────────────────────────────────
        b_raw = raw.get("storage", {}) or {}
        storage = StorageConfig(
            backend=str(b_raw.get("backend", Defaults.STORAGE_BACKEND)).lower(),
            base_dir=str(b_raw.get("base_dir", Defaults.STORAGE_BASE_DIR)),
            public_base_url=str(b_raw.get("public_base_url", Defaults.STORAGE_PUBLIC_BASE_URL)),
            bucket=str(b_raw.get("bucket", Defaults.STORAGE_BUCKET)),
        )
        cls._validate_choice("storage.backend", storage.backend, STORAGE_BACKENDS)
        if storage.backend == "supabase" and not store.url:
            raise ConfigValidationError("store.url is required for the supabase storage backend")

        # ─────────────────────────────────────────────────────────────────────
        # API
        # ─────────────────────────────────────────────────────────────────────
        a_raw = raw.get("api", {}) or {}
        origins = a_raw.get("cors_origins", Defaults.API_CORS_ORIGINS)
        if isinstance(origins, str):
            origins = [o.strip() for o in origins.split(",") if o.strip()]
        api = ApiConfig(
            cors_origins=list(origins),
            list_max_limit=int(a_raw.get("list_max_limit", Defaults.API_LIST_MAX_LIMIT)),
            list_default_limit=int(a_raw.get("list_default_limit", Defaults.API_LIST_DEFAULT_LIMIT)),
        )
        cls._validate_positive("api.list_max_limit", api.list_max_limit)
        cls._validate_range("api.list_default_limit", api.list_default_limit, 1, api.list_max_limit)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        l_raw = raw.get("logging", {}) or {}
        log_level_raw = l_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            level=log_level,
        )
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            provider=provider,
            voices=voices,
            chunking=chunking,
            pacing=pacing,
            store=store,
            storage=storage,
            api=api,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")

    @staticmethod
    def _validate_choice(name: str, value: str, choices: tuple[str, ...]) -> None:
        """Validate that a value is one of the accepted choices."""
        if value not in choices:
            raise ConfigValidationError(f"{name} must be one of {', '.join(choices)}, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get the validated ServiceConfig.
    """
    raw: Dict[str, Any]

    @property
    def store_backend(self) -> str:
        """Get the configured data store backend."""
        return str((self.raw.get("store", {}) or {}).get("backend", Defaults.STORE_BACKEND))

    @property
    def mock_mode(self) -> bool:
        """Whether the provider would answer in mock mode."""
        provider = self.raw.get("provider", {}) or {}
        return _as_bool(provider.get("mock_mode", False)) or not provider.get("api_token")

    def get_service_config(self) -> ServiceConfig:
        """
        Get validated ServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# Environment variable -> (section, key)
_ENV_OVERRIDES = {
    "PPIO_API_URL": ("provider", "api_url"),
    "PPIO_API_TOKEN": ("provider", "api_token"),
    "ENABLE_MOCK_MODE": ("provider", "mock_mode"),
    "MOCK_AUDIO_URL": ("provider", "mock_audio_url"),
    "VOICE_SAM_ALTMAN": ("voices", "sam_altman"),
    "VOICE_FEIFEILI": ("voices", "feifeili"),
    "VOICE_WUENDA": ("voices", "wuenda"),
    "VOICE_PAUL_GRAHAM": ("voices", "paul_graham"),
    "SUPABASE_URL": ("store", "url"),
    "VOICE_PROXY_STORE_BACKEND": ("store", "backend"),
    "VOICE_PROXY_STORAGE_BACKEND": ("storage", "backend"),
    "ALLOWED_ORIGIN": ("api", "cors_origins"),
}


def apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to a raw settings dict in place.

    The service role key wins over the anon key when both are set.
    """
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            raw.setdefault(section, {})[key] = value

    api_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY")
    if api_key:
        raw.setdefault("store", {})["api_key"] = api_key

    return raw


def default_settings_path() -> str:
    """Settings path, overridable through VOICE_PROXY_SETTINGS."""
    return os.getenv("VOICE_PROXY_SETTINGS", "config/settings.yaml")


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file. Defaults to
            VOICE_PROXY_SETTINGS or config/settings.yaml.

    Returns:
        Settings object with loaded configuration and environment overrides.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path or default_settings_path())
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    return Settings(raw=apply_env_overrides(raw))
