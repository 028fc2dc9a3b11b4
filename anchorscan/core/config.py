"""
配置管理 - 使用Pydantic Settings实现环境变量管理
扫描核心的所有可调参数都在这里; 各组件显式接收 Settings 实例, 不读取全局变量
"""
from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CrossingPolicy(str, Enum):
    """跨越两个文本段的 span 的映射策略"""
    STRICT = "strict"
    PERMISSIVE = "permissive"


class Settings(BaseSettings):
    """应用配置类 - 所有配置项通过环境变量管理"""

    project_name: str = Field(default="anchorscan", description="项目名称")
    version: str = Field(default="1.0.0", description="版本号")

    # 锚点
    context_window: int = Field(default=32, ge=0, description="prefix/suffix 上下文窗口长度")

    # 事件总线
    idle_timeout_ms: int = Field(default=3000, gt=0, description="空闲触发扫描的超时时间(毫秒)")
    sentence_terminal_pattern: str = Field(default=r"[.!?]", description="句末标点正则")

    # 协调器
    note_open_debounce_ms: int = Field(default=1000, ge=0, description="同一文档全量扫描的去抖窗口(毫秒)")

    # 坐标映射
    segment_crossing_policy: CrossingPolicy = Field(
        default=CrossingPolicy.STRICT,
        description="跨文本段 span 的映射策略: strict 丢弃, permissive 独立映射端点",
    )

    # 外部抽取引擎
    extraction_base_url: Optional[str] = Field(default=None, description="关系抽取服务地址")
    extraction_api_key: Optional[str] = Field(default=None, description="关系抽取服务API密钥")
    extraction_timeout: float = Field(default=30.0, gt=0, description="请求超时时间(秒)")
    extraction_retry_attempts: int = Field(default=1, ge=1, description="增量扫描的最大尝试次数")

    # Redis配置 (可选)
    redis_url: Optional[str] = Field(default=None, description="Redis连接URL")
    redis_ttl: int = Field(default=86400, description="缓存过期时间(秒)")
    cache_key_prefix: str = Field(default="decorations", description="缓存键前缀")

    # 日志
    log_level: str = Field(default="INFO", description="日志级别")
    json_logs: bool = Field(default=False, description="是否输出JSON格式日志")

    model_config = SettingsConfigDict(
        env_prefix="ANCHORSCAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # 忽略未定义的环境变量
    )

    @property
    def idle_timeout_seconds(self) -> float:
        return self.idle_timeout_ms / 1000.0

    @property
    def note_open_debounce_seconds(self) -> float:
        return self.note_open_debounce_ms / 1000.0

    @property
    def cache_enabled(self) -> bool:
        """是否配置了持久化缓存"""
        return bool(self.redis_url)


@lru_cache()
def get_settings() -> Settings:
    """
    获取配置单例
    使用lru_cache确保全局只有一个Settings实例
    """
    return Settings()
