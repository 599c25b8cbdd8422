"""Structured logging helpers (PII-safe)."""

import hashlib
import logging
from typing import Any

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once per process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


def mask_email(email: str | None) -> str:
    """Return a short, stable fingerprint of an email address for log lines."""
    if not email:
        return ""
    local, _, domain = email.strip().lower().partition("@")
    digest = hashlib.sha256(email.strip().lower().encode("utf-8")).hexdigest()[:10]
    prefix = local[:2] if local else ""
    return f"{prefix}***@{domain}#{digest}" if domain else f"{prefix}***#{digest}"


def build_log_context(
    *,
    user_id: str | None = None,
    appointment_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if appointment_id:
        context["appointment_id"] = appointment_id
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
