# backend/nottu/core/security_logger.py
"""
Dedicated security logger for fail2ban integration.

Passkey ceremony outcomes and rejected bearer tokens are written in a fixed,
parseable format. When SECURITY_LOG_PATH is configured the records go to a
rotating file; otherwise they propagate to the application's root handlers.
"""

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

from nottu.core.config import settings


def sanitize(value: str | None, max_length: int = 255) -> str:
    """
    Sanitize a value for a security log field.

    Newlines, brackets and control characters are removed so a field cannot
    forge a second record or break the `[EVENT]` framing.
    """
    if not value:
        return "unknown"

    value = str(value).strip()
    value = re.sub(r"[\n\r\[\]<>\x00-\x1f\x7f-\x9f]", "", value)
    return value[:max_length]


def mask_email(email: str | None) -> str:
    """Keep the first characters of the local part and the domain only."""
    if not email or "@" not in email:
        return sanitize(email)

    local, domain = email.rsplit("@", 1)
    if len(local) > 3:
        masked_local = local[:3] + "***"
    else:
        masked_local = local[0] + "***" if local else "***"

    return f"{sanitize(masked_local)}@{sanitize(domain)}"


class SecurityLogger:
    """
    Security event logger.

    Log format compatible with fail2ban datepattern:
        2026-01-05 10:15:30 SECURITY [EVENT_TYPE] ip=x.x.x.x field=value ...
    """

    _instance = None
    _initialized = False

    def __new__(cls, log_path: str | None = None):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, log_path: str | None = None):
        if SecurityLogger._initialized:
            return

        self.logger = logging.getLogger("security")
        self.logger.setLevel(logging.INFO)

        if log_path:
            path = Path(log_path)
            path.parent.mkdir(parents=True, exist_ok=True)

            # 50MB max, keep 10 backups
            handler = RotatingFileHandler(str(path), maxBytes=50 * 1024 * 1024, backupCount=10)
            handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s SECURITY [%(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            self.logger.addHandler(handler)
            self.logger.propagate = False

        SecurityLogger._initialized = True

    def passkey_failed(self, ip: str, email: str | None, reason: str) -> None:
        """
        Log a rejected ceremony step (unknown user, expired challenge, bad signature).
        """
        self.logger.info(
            f"PASSKEY_FAILED] ip={sanitize(ip)} email={mask_email(email)} reason={sanitize(reason)}"
        )

    def login_success(self, ip: str, user_id: str, method: str = "passkey") -> None:
        self.logger.info(
            f"LOGIN_SUCCESS] ip={sanitize(ip)} user_id={sanitize(user_id)} method={sanitize(method)}"
        )

    def registration_success(self, ip: str, user_id: str) -> None:
        self.logger.info(f"REGISTRATION_SUCCESS] ip={sanitize(ip)} user_id={sanitize(user_id)}")

    def bad_token(self, ip: str, reason: str) -> None:
        """
        Log a rejected bearer token (malformed, bad signature, wrong audience).

        Expired tokens are normal behavior and are not logged here.
        """
        self.logger.info(f"BAD_TOKEN] ip={sanitize(ip)} reason={sanitize(reason)}")


security_log = SecurityLogger(settings.SECURITY_LOG_PATH)
