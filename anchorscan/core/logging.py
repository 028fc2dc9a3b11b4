"""
结构化日志配置模块 - 使用structlog实现结构化日志
日志即文档：每条事件都带有文档ID、触发原因等上下文
"""
import logging
import sys
from typing import Any

import structlog
from structlog.types import FilteringBoundLogger, Processor


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    配置结构化日志系统

    Args:
        level: 日志级别 (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: 是否输出JSON格式日志
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[Processor] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )


def get_logger(name: str, **initial_context: Any) -> FilteringBoundLogger:
    """
    获取结构化日志记录器

    Args:
        name: 日志记录器名称（通常使用模块名）
        **initial_context: 初始上下文数据
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


class LogEvent:
    """标准化的日志事件类型"""

    # 锚点
    ANCHOR_NOT_FOUND = "anchor_not_found"
    ANCHOR_AMBIGUOUS_RESOLVED = "anchor_ambiguous_resolved"
    REALIGN_COMPLETED = "realign_completed"

    # 坐标映射
    SPAN_OUT_OF_BOUNDS = "span_out_of_bounds"
    SPANS_MAPPED = "spans_mapped"

    # 事件总线
    SCAN_REQUEST_EMITTED = "scan_request_emitted"
    SCAN_REQUEST_SKIPPED = "scan_request_skipped"
    BUS_DISPOSED = "bus_disposed"

    # 扫描
    SCAN_DISPATCHED = "scan_dispatched"
    SCAN_COMPLETED = "scan_completed"
    SCAN_SUPERSEDED = "scan_superseded"
    SCAN_FAILED = "scan_failed"
    FULL_SCAN_DEBOUNCED = "full_scan_debounced"

    # 外部服务
    EXTRACTION_CALL = "extraction_call"
    EXTRACTION_ERROR = "extraction_error"
    REGISTRY_ERROR = "registry_error"
    OBSERVER_ERROR = "observer_error"

    # 持久化
    CACHE_HIT = "cache_hit"
    CACHE_STALE = "cache_stale"
    CACHE_READ_FAILED = "cache_read_failed"
    CACHE_WRITE_FAILED = "cache_write_failed"


def create_service_logger(service_name: str) -> FilteringBoundLogger:
    """创建服务级别的日志记录器"""
    return get_logger(f"service.{service_name}", service=service_name)
