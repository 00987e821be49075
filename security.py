#!/usr/bin/env python3
"""Input validation and log redaction for repo-mirror-sync."""

import os
import re
from typing import List, Optional
from urllib.parse import urlsplit, urlunsplit


class SecurityValidator:
    """Validation of user-supplied inputs and redaction of secrets."""

    MAX_URL_LENGTH = 2048
    MAX_USERNAME_LENGTH = 100
    MAX_NAMESPACE_LENGTH = 255
    MAX_PATH_LENGTH = 500
    MAX_REMOTE_NAME_LENGTH = 64

    SAFE_USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
    SAFE_NAMESPACE_PATTERN = re.compile(r"^[A-Za-z0-9._/-]+$")
    SAFE_REMOTE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

    REDACTION_PATTERNS = [
        (r"(https?://)[^/@\s]+@", r"\1[REDACTED]@"),  # URLs with credentials
        (r"token[=:\s]+[^\s]+", "token=[REDACTED]"),
        (r"password[=:\s]+[^\s]+", "password=[REDACTED]"),
        (r"glpat[-_][A-Za-z0-9_-]+", "[GITLAB_TOKEN_REDACTED]"),
        (r"github_pat_[A-Za-z0-9_]+", "[GITHUB_TOKEN_REDACTED]"),
        (r"gh[pousr]_[A-Za-z0-9_]+", "[GITHUB_TOKEN_REDACTED]"),
    ]

    @staticmethod
    def _has_control_chars(value: str) -> bool:
        return "\x00" in value or any(ord(c) < 32 for c in value)

    @classmethod
    def validate_url(cls, url: str, allowed_schemes: Optional[List[str]] = None) -> str:
        """Validate a provider or git remote URL."""
        if not url or not isinstance(url, str):
            raise ValueError("URL must be a non-empty string")

        if len(url) > cls.MAX_URL_LENGTH:
            raise ValueError(f"URL exceeds maximum length of {cls.MAX_URL_LENGTH}")

        if cls._has_control_chars(url):
            raise ValueError("URL contains null bytes or control characters")

        if url.startswith("git@"):
            scheme = "ssh"
        elif "://" in url:
            scheme = url.split("://")[0].lower()
        else:
            raise ValueError("URL must use http, https, ssh or SSH (git@) syntax")

        if scheme not in ("http", "https", "ssh"):
            raise ValueError(f"unsupported URL scheme '{scheme}'")

        if allowed_schemes and scheme not in allowed_schemes:
            raise ValueError(
                f"URL scheme '{scheme}' not in allowed schemes: {allowed_schemes}"
            )

        return url

    @classmethod
    def validate_username(cls, username: str) -> str:
        """Validate a user or organization login."""
        if not username or not isinstance(username, str):
            raise ValueError("Username must be a non-empty string")

        if len(username) > cls.MAX_USERNAME_LENGTH:
            raise ValueError(
                f"Username exceeds maximum length of {cls.MAX_USERNAME_LENGTH}"
            )

        if cls._has_control_chars(username):
            raise ValueError("Username contains null bytes or control characters")

        if not cls.SAFE_USERNAME_PATTERN.match(username):
            raise ValueError("Username contains invalid characters")

        return username

    @classmethod
    def validate_namespace(cls, namespace: str) -> str:
        """Validate a group path such as ``team/sub``."""
        if not namespace or not isinstance(namespace, str):
            raise ValueError("Namespace must be a non-empty string")

        if len(namespace) > cls.MAX_NAMESPACE_LENGTH:
            raise ValueError(
                f"Namespace exceeds maximum length of {cls.MAX_NAMESPACE_LENGTH}"
            )

        if cls._has_control_chars(namespace):
            raise ValueError("Namespace contains null bytes or control characters")

        if ".." in namespace:
            raise ValueError("Namespace contains path traversal sequences")

        if not cls.SAFE_NAMESPACE_PATTERN.match(namespace):
            raise ValueError("Namespace contains invalid characters")

        return namespace.strip("/")

    @classmethod
    def validate_remote_name(cls, name: str) -> str:
        if not name or len(name) > cls.MAX_REMOTE_NAME_LENGTH:
            raise ValueError("Remote name must be 1-64 characters")
        if name == "origin":
            raise ValueError("Remote name 'origin' is reserved for the source")
        if not cls.SAFE_REMOTE_NAME_PATTERN.match(name):
            raise ValueError("Remote name contains invalid characters")
        return name

    @classmethod
    def validate_file_path(cls, path: str) -> str:
        """Validate the cache directory path."""
        if not path or not isinstance(path, str):
            raise ValueError("File path must be a non-empty string")

        if len(path) > cls.MAX_PATH_LENGTH:
            raise ValueError(
                f"File path exceeds maximum length of {cls.MAX_PATH_LENGTH}"
            )

        if "\x00" in path:
            raise ValueError("File path contains null bytes")

        if ".." in path.split(os.sep):
            raise ValueError("File path contains path traversal sequences")

        return os.path.normpath(path)

    @staticmethod
    def strip_credentials(url: str) -> str:
        """Return ``url`` without any userinfo component."""
        parts = urlsplit(url)
        if not parts.scheme or "@" not in parts.netloc:
            return url
        host = parts.netloc.rsplit("@", 1)[1]
        return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))

    @classmethod
    def sanitize_for_logging(cls, message: str) -> str:
        """Sanitize message for safe logging by removing potential credentials."""
        if not message:
            return message

        sanitized = str(message)
        for pattern, replacement in cls.REDACTION_PATTERNS:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)

        return sanitized
