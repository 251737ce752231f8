"""
Custom Exceptions
自定义异常类

调用方只会看到完整的 Suggestion 或以下致命异常之一；
FetchError 属于降级内容，始终在抓取阶段内部被吸收。
"""


class AnnotationError(Exception):
    """标注流水线基础异常类"""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(AnnotationError):
    """配置错误"""
    pass


class FatalModerationError(AnnotationError):
    """用户上下文未通过安全审核，流水线立即终止"""
    pass


class FatalUpstreamError(AnnotationError):
    """上游服务不可用（标签获取耗尽重试、生成/评审调用失败）"""
    pass


class LLMError(FatalUpstreamError):
    """LLM 调用错误"""

    def __init__(self, message: str, provider: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.provider = provider


class LLMSchemaError(LLMError):
    """LLM 结构化输出在重试后仍未通过 schema 校验"""
    pass


class FetchError(AnnotationError):
    """抓取错误 (降级内容，不向外传播)"""

    def __init__(self, message: str, source: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.source = source
