"""
Utils Module
通用工具函数
"""
from .logger import setup_logger, get_logger, configure_package_logging
from .exceptions import (
    AnnotationError,
    ConfigurationError,
    FatalModerationError,
    FatalUpstreamError,
    FetchError,
    LLMError,
    LLMSchemaError,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "configure_package_logging",
    "AnnotationError",
    "ConfigurationError",
    "FatalModerationError",
    "FatalUpstreamError",
    "FetchError",
    "LLMError",
    "LLMSchemaError",
]
