"""配置管理：Pydantic Settings 从 TOML 加载。"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

_DEFAULT_TOML = Path(__file__).resolve().parent.parent / "config" / "default.toml"
_DEFAULT_STATS_FILE = Path(__file__).resolve().parent.parent.parent / "data" / "usage-stats.json"


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    cors_origins: list[str] = ["*"]


class UpstreamConfig(BaseModel):
    api_url: str = "https://openrouter.ai/api/v1/chat/completions"
    api_keys: list[str] = []
    timeout: float = 30.0
    # 0 表示每个 key 尝试一次
    max_attempts: int = 0
    referer: str = "http://localhost:3000"
    title: str = "Mandarin Photo Captions"


class VisionConfig(BaseModel):
    model: str = "openai/gpt-4o-mini"
    max_tokens: int = 400
    temperature: float = 0.1
    top_p: float = 0.9
    frequency_penalty: float = 0.1
    presence_penalty: float = 0.1


class CaptionConfig(BaseModel):
    model: str = "qwen/qwen-2.5-72b-instruct:free"
    max_tokens: int = 800
    temperature: float = 0.5
    top_p: float = 0.9
    frequency_penalty: float = 0.2
    presence_penalty: float = 0.1
    max_captions: int = 3


class DictionaryConfig(BaseModel):
    model: str = "qwen/qwen-2.5-72b-instruct:free"
    max_tokens: int = 300
    temperature: float = 0.2
    # 进程内词条缓存上限
    memo_size: int = 256


class CacheConfig(BaseModel):
    ttl_hours: float = 24.0
    stats_file: Path = _DEFAULT_STATS_FILE


class UploadConfig(BaseModel):
    max_bytes: int = 10 * 1024 * 1024


class PricingConfig(BaseModel):
    input_per_1k: float = 0.00015
    output_per_1k: float = 0.0006


class Settings(BaseSettings):
    server: ServerConfig = ServerConfig()
    upstream: UpstreamConfig = UpstreamConfig()
    vision: VisionConfig = VisionConfig()
    captions: CaptionConfig = CaptionConfig()
    dictionary: DictionaryConfig = DictionaryConfig()
    cache: CacheConfig = CacheConfig()
    upload: UploadConfig = UploadConfig()
    pricing: PricingConfig = PricingConfig()

    model_config = SettingsConfigDict(env_prefix="MANDARIN_", env_nested_delimiter="__")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # 优先级：构造参数 > 环境变量 > TOML 文件 > 字段默认值
        return (init_settings, env_settings, TomlConfigSettingsSource(settings_cls))


def load_settings(toml_path: Path = _DEFAULT_TOML) -> Settings:
    """从 TOML 文件加载配置，环境变量可覆盖。文件不存在时只用默认值和环境变量。"""

    class _FileSettings(Settings):
        model_config = SettingsConfigDict(toml_file=toml_path)

    return _FileSettings()
