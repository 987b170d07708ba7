"""Startup config logging with credentials masked."""

from sqlalchemy.engine import make_url

from storepay.common.config import CommonSettings
from storepay.common.logging import logger

SECRET_FIELDS = ("gateway_api_key", "gateway_api_secret")
URL_FIELDS = ("database_url",)


def _display_value(field: str, value) -> str:
    if value is None or value == "":
        return "<unset>"
    if field in SECRET_FIELDS:
        return "<redacted>"
    if field in URL_FIELDS:
        # Keeps driver/host/database visible, masks only the password.
        return make_url(value).render_as_string(hide_password=True)
    return str(value)


def log_startup_config(config: CommonSettings, fields: list[str]) -> dict[str, str]:
    """Log the named settings once at boot and return what was logged."""

    shown = {"service": config.service_name}
    for field in fields:
        shown[field] = _display_value(field, getattr(config, field))
    logger.info("startup_config=%s", shown)
    return shown
