"""
Configuration Management Module
统一配置管理，实现服务配置解耦
"""
from .settings import (
    Settings,
    get_settings,
    get_render_settings,
    get_twitter_settings,
    get_grok_settings,
    get_hatena_settings,
    get_llm_settings,
    get_pipeline_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "get_render_settings",
    "get_twitter_settings",
    "get_grok_settings",
    "get_hatena_settings",
    "get_llm_settings",
    "get_pipeline_settings",
]
