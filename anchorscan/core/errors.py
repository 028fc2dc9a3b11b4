"""
错误处理模块 - 定义自定义异常类
这些异常都在扫描核心内部处理: 协调器和标注会话捕获后记录日志并计数
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """错误代码枚举"""
    INVALID_INPUT = "INVALID_INPUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    ANCHOR_NOT_FOUND = "ANCHOR_NOT_FOUND"
    SPAN_OUT_OF_BOUNDS = "SPAN_OUT_OF_BOUNDS"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"


class BaseApplicationError(Exception):
    """应用基础异常类"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class InvalidInputError(BaseApplicationError):
    """输入验证错误"""
    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_INPUT,
            details=details,
        )


class AnchorNotFoundError(BaseApplicationError):
    """引用文本在新文本中不存在"""
    def __init__(self, exact: str, label: Optional[str] = None):
        details: Dict[str, Any] = {"exact": exact}
        if label:
            details["label"] = label
        super().__init__(
            message=f"Quote '{exact}' not found in current text",
            error_code=ErrorCode.ANCHOR_NOT_FOUND,
            details=details,
        )


class SpanOutOfBoundsError(BaseApplicationError):
    """span 无法映射到文档坐标"""
    def __init__(self, flat_from: int, flat_to: int, reason: str = "no containing segment"):
        super().__init__(
            message=f"Span [{flat_from}, {flat_to}) could not be mapped: {reason}",
            error_code=ErrorCode.SPAN_OUT_OF_BOUNDS,
            details={"from": flat_from, "to": flat_to, "reason": reason},
        )


class ExternalExtractionError(BaseApplicationError):
    """外部关系抽取引擎调用失败"""
    def __init__(self, message: str, original_error: Optional[Exception] = None, trigger: Optional[str] = None):
        details: Dict[str, Any] = {}
        if original_error:
            details["original_error"] = str(original_error)
        if trigger:
            details["trigger"] = trigger

        super().__init__(
            message=f"Extraction failed: {message}",
            error_code=ErrorCode.EXTRACTION_FAILED,
            details=details,
        )


class PersistenceError(BaseApplicationError):
    """缓存读写错误"""
    def __init__(self, message: str, operation: str, document_id: Optional[str] = None):
        details: Dict[str, Any] = {"operation": operation}
        if document_id:
            details["document_id"] = document_id
        super().__init__(
            message=f"Persistence operation '{operation}' failed: {message}",
            error_code=ErrorCode.PERSISTENCE_FAILED,
            details=details,
        )
