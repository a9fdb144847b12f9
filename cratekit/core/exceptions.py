"""统一异常体系

所有业务异常继承 CrateKitError。CLI 层据此输出友好提示，
协作方（源、注册表 API、传输层）的失败统一在边界处包装后继续抛出，
本核心内没有任何静默恢复。
"""

from __future__ import annotations


class CrateKitError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)

    def with_context(self, context: str) -> CrateKitError:
        """返回同类型异常，消息为 "context: 原消息"，附加字段（如 status）原样保留"""
        wrapped = type(self)(f"{context}: {self}")
        wrapped.__dict__.update(self.__dict__)
        return wrapped


class ConfigError(CrateKitError):
    """配置值缺失、类型错误或无法解析"""

    code = "CONFIG_ERROR"


class NetworkDisabledError(CrateKitError):
    """当前模式（--frozen / --offline）禁止访问网络，不会发出任何请求"""

    code = "NETWORK_DISABLED"


class TransportError(CrateKitError):
    """连接、超时、低速中止或 TLS 失败"""

    code = "TRANSPORT_ERROR"


class RegistryApiError(CrateKitError):
    """注册表返回非成功响应"""

    code = "REGISTRY_API_ERROR"

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ValidationError(CrateKitError):
    """发布前校验失败：不可发布、依赖来源不合规、许可证文件缺失等"""

    code = "VALIDATION_ERROR"


class NotFoundError(CrateKitError):
    """包标识不在集合中、源未注册、找不到工作区清单"""

    code = "NOT_FOUND"
