"""GatewaySettings -- Gateway 配置加载

从环境变量加载 API 元信息与 CORS 配置。
"""

import os

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


class GatewaySettings(BaseModel):
    """Gateway 配置 -- 从环境变量加载

    环境变量:
        ROCKETSTARTER_API_TITLE: OpenAPI 标题
        ROCKETSTARTER_API_VERSION: OpenAPI 版本号
        ROCKETSTARTER_CORS_ORIGINS: 逗号分隔的允许来源，为空时不启用 CORS
    """

    title: str = Field(default="RocketStarter Gateway", description="API 标题")
    version: str = Field(default="0.1.0", description="API 版本")
    cors_origins: list[str] = Field(default_factory=list, description="CORS 允许来源")


def load_gateway_settings() -> GatewaySettings:
    """从环境变量加载 Gateway 配置

    Returns:
        GatewaySettings 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("ROCKETSTARTER_API_TITLE"):
        kwargs["title"] = val

    if val := os.environ.get("ROCKETSTARTER_API_VERSION"):
        kwargs["version"] = val

    if val := os.environ.get("ROCKETSTARTER_CORS_ORIGINS"):
        origins = [origin.strip() for origin in val.split(",") if origin.strip()]
        if origins:
            kwargs["cors_origins"] = origins
        else:
            log.warning("invalid_cors_config", env_var="ROCKETSTARTER_CORS_ORIGINS", value=val)

    return GatewaySettings(**kwargs)
