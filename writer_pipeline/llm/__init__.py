"""生成服务客户端。"""

from .client import LLMClient, get_llm_client

__all__ = ["LLMClient", "get_llm_client"]
