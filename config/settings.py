"""
Settings Configuration
使用 Pydantic 进行配置验证和管理
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class RenderSettings(BaseSettings):
    """页面渲染服务 (Cloudflare Browser Rendering) 配置"""
    account_id: Optional[str] = Field(default=None, description="Cloudflare Account ID")
    api_token: Optional[str] = Field(default=None, description="Browser Rendering API Token")
    base_url: str = Field(
        default="https://api.cloudflare.com/client/v4/accounts",
        description="Render API base URL",
    )
    max_chars: int = Field(default=800000, description="Markdown 最大字符数")

    class Config:
        env_prefix = "RENDER_"


class TwitterSettings(BaseSettings):
    """Twitter/X API 配置"""
    bearer_token: Optional[str] = Field(default=None, description="X API Bearer Token")
    api_base_url: str = Field(default="https://api.x.com/2", description="X API base URL")
    oembed_url: str = Field(default="https://publish.twitter.com/oembed", description="oEmbed endpoint")

    class Config:
        env_prefix = "TWITTER_"


class GrokSettings(BaseSettings):
    """xAI Grok 配置 (OpenAI 兼容接口)"""
    api_key: Optional[str] = Field(default=None, description="xAI API Key")
    base_url: str = Field(default="https://api.x.ai/v1", description="xAI base URL")
    model: str = Field(default="grok-4-1-fast-reasoning", description="Grok 模型")
    timeout: float = Field(default=30.0, description="请求超时时间(秒)")

    class Config:
        env_prefix = "XAI_"


class HatenaSettings(BaseSettings):
    """Hatena Bookmark 标签接口配置"""
    tags_api_url: str = Field(
        default="https://bookmark.hatenaapis.com/rest/1/my/tags",
        description="已有标签 API",
    )
    max_attempts: int = Field(default=3, description="最大尝试次数")
    base_delay_sec: float = Field(default=0.5, description="首次退避时间(秒)")
    max_delay_sec: float = Field(default=2.0, description="最大退避时间(秒)")

    class Config:
        env_prefix = "HATENA_"


class LLMSettings(BaseSettings):
    """LLM 配置"""
    provider: str = Field(default="openai", description="LLM提供商: openai, grok")
    summary_model: str = Field(default="gpt-5-mini", description="摘要生成模型")
    tags_model: str = Field(default="gpt-5-mini", description="标签生成模型")
    judge_model: str = Field(default="gpt-5-mini", description="评审模型")
    web_search_model: str = Field(default="gpt-5-mini", description="web_search 模型")
    moderation_model: str = Field(default="omni-moderation-latest", description="审核模型")
    temperature: Optional[float] = Field(default=None, description="生成温度 (不填则使用模型默认)")
    max_tokens: int = Field(default=2048, description="最大生成token数")
    timeout: float = Field(default=60.0, description="客户端超时(秒)")
    schema_retries: int = Field(default=2, description="结构化输出校验失败重试次数")

    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API Key")

    class Config:
        env_prefix = "LLM_"


class PipelineSettings(BaseSettings):
    """标注流水线配置"""
    max_rounds: int = Field(default=3, description="生成最大轮数")
    candidates_per_round: int = Field(default=3, description="每轮并行候选数")
    generation_timeout_sec: float = Field(default=45.0, description="单次生成/评审调用超时(秒)")
    fetch_timeout_sec: float = Field(default=20.0, description="抓取阶段超时(秒)")
    web_context_max_chars: int = Field(default=1000, description="Web 上下文最大字符数")
    moderation_max_chars: int = Field(default=5000, description="审核输入最大字符数")

    class Config:
        env_prefix = "PIPELINE_"


class GeneralSettings(BaseSettings):
    """通用设置"""
    request_timeout: int = Field(default=30, description="请求超时时间(秒)")
    user_agent: str = Field(default="HabuMetaFetcher/1.0", description="User Agent")


class Settings(BaseSettings):
    """主配置类 - 聚合所有子配置"""

    render: RenderSettings = Field(default_factory=RenderSettings)
    twitter: TwitterSettings = Field(default_factory=TwitterSettings)
    grok: GrokSettings = Field(default_factory=GrokSettings)
    hatena: HatenaSettings = Field(default_factory=HatenaSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    general: GeneralSettings = Field(default_factory=GeneralSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """从指定的 .env 文件加载配置"""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            render=RenderSettings(),
            twitter=TwitterSettings(),
            grok=GrokSettings(),
            hatena=HatenaSettings(),
            llm=LLMSettings(),
            pipeline=PipelineSettings(),
            general=GeneralSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """获取全局配置单例"""
    return Settings.load_from_env_file()


# 便捷访问
def get_render_settings() -> RenderSettings:
    return get_settings().render


def get_twitter_settings() -> TwitterSettings:
    return get_settings().twitter


def get_grok_settings() -> GrokSettings:
    return get_settings().grok


def get_hatena_settings() -> HatenaSettings:
    return get_settings().hatena


def get_llm_settings() -> LLMSettings:
    return get_settings().llm


def get_pipeline_settings() -> PipelineSettings:
    return get_settings().pipeline
