from enum import Enum

from pydantic import BaseModel


class LoggingLevelEnum(str, Enum):
    CRITICAL = "CRITICAL"
    DEBUG = "DEBUG"
    ERROR = "ERROR"
    INFO = "INFO"
    WARNING = "WARNING"


class LoggingModel(BaseModel):
    app_level: LoggingLevelEnum = LoggingLevelEnum.INFO
    """Level of the service logs, request attributes are bound to each line."""
    sys_level: LoggingLevelEnum = LoggingLevelEnum.WARNING
    """Level of the dependencies logs (boto3, aiohttp, Azure SDK)."""


class MonitoringModel(BaseModel):
    """
    Logging settings, tracing is configured from the `APPLICATIONINSIGHTS_CONNECTION_STRING` environment variable.
    """

    logging: LoggingModel = LoggingModel()  # Object is fully defined by default
