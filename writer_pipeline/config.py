"""
配置管理模块

使用 Pydantic Settings 从环境变量 / .env 读取配置，覆盖生成服务、写作默认值、
品类打分参数与投递遥测（telemetry）。
"""

from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_DIR = PACKAGE_DIR.parent


class Settings(BaseSettings):
    """应用配置类"""

    # OpenAI API 配置（api_key 为空 = 生成服务不可用，走占位文本）
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    model_name: str = "gpt-4o-mini"
    llm_temperature: float = 0.7
    llm_timeout_seconds: float = 60.0
    llm_retry_attempts: int = 2

    # 写作默认值（调用方未指定时套用一次，并原样回写到 meta）
    writer_default_style: str = "generic"
    writer_default_locale: str = "ja"

    # 品类打分（经验值，未经校准，保留为可调参数）
    category_alias_weight: int = 3
    category_allowed_word_weight: int = 1
    category_alias_min_len: int = 2
    category_allowed_word_min_len: int = 4

    # 投递遥测（endpoint / token 任一为空即整体禁用）
    telemetry_endpoint: str = ""
    telemetry_token: str = ""
    telemetry_app: str = "local"
    telemetry_env: str = "development"
    telemetry_attempts: int = 3
    telemetry_min_delay_ms: int = 200
    telemetry_max_delay_ms: int = 2000
    telemetry_deadline_ms: int = 30000
    telemetry_jitter_ratio: float = 0.3
    telemetry_attempt_timeout_seconds: float = 5.0

    # 服务器配置
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    max_body_bytes: int = 256 * 1024

    # 速率限制（slowapi 格式）
    rate_limit_writer: str = "30/minute"

    # 日志
    log_level: str = "INFO"
    log_format: str = "auto"  # "auto" | "json" | "console"

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def validate_startup(self) -> list[str]:
        """启动时校验关键配置，返回警告列表。"""
        warnings: list[str] = []
        if not self.openai_api_key:
            warnings.append("OPENAI_API_KEY 未设置，生成结果将退化为占位文本")
        if bool(self.telemetry_endpoint) != bool(self.telemetry_token):
            warnings.append("TELEMETRY_ENDPOINT / TELEMETRY_TOKEN 只配置了一项，遥测已禁用")
        if self.telemetry_attempts < 1:
            warnings.append("TELEMETRY_ATTEMPTS 小于 1，将按 1 次处理")
        return warnings

    @property
    def telemetry_enabled(self) -> bool:
        """endpoint 与 token 同时存在时才启用遥测"""
        return bool(self.telemetry_endpoint.strip() and self.telemetry_token.strip())


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例（带缓存）"""
    return Settings()


# 导出全局配置实例
settings = get_settings()
