"""
Base Fetcher
所有抓取器的抽象基类
"""
from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar
import logging

import httpx

from config import Settings, get_settings


logger = logging.getLogger(__name__)

T = TypeVar("T")  # 泛型返回类型


class BaseFetcher(ABC, Generic[T]):
    """
    抓取器抽象基类

    HTTP 客户端可由调用方注入（测试时注入 MockTransport），
    否则在首次使用时惰性创建，并由抓取器自己负责关闭。
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    @property
    @abstractmethod
    def name(self) -> str:
        """返回抓取器名称"""
        pass

    @abstractmethod
    async def fetch(self, url: str) -> T:
        """
        抓取接口；实现方必须吸收所有非致命错误

        Args:
            url: 目标 URL

        Returns:
            抓取结果 (失败时为空结果)
        """
        pass

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            general = self.settings.general
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(float(general.request_timeout)),
                headers={"User-Agent": general.user_agent},
            )
            self._owns_client = True
        return self._client

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()

    async def close(self):
        """清理资源"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _log_error(self, message: str, error: Exception):
        """记录错误日志"""
        logger.warning(f"[{self.name}] {message}: {error}")
