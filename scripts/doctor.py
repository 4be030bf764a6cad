"""Environment compatibility and preflight checks for the gateway."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple

import httpx

from streamgate.core.config import GatewaySettings
from streamgate.providers import ProviderName

MIN_PYTHON = (3, 9)
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
LOG_FORMATS = {"json", "text"}
SHORT_INTERVAL_MS = 100


@dataclass
class DoctorResult:
    ok: bool
    messages: List[str]


def _python_version_tuple() -> Tuple[int, int, int]:
    v = sys.version_info
    return (v.major, v.minor, v.micro)


def _check_python_version(errors: List[str]) -> None:
    current = _python_version_tuple()
    if current[:2] < MIN_PYTHON:
        errors.append(
            f"Python {current[0]}.{current[1]} is unsupported. "
            f"Use Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]} or newer."
        )


def _check_settings(env: Mapping[str, str], errors: List[str], warnings: List[str]) -> Optional[GatewaySettings]:
    try:
        settings = GatewaySettings.from_env(env)
    except ValueError as exc:
        errors.append(str(exc))
        return None

    if settings.queue_min_interval * 1000 < SHORT_INTERVAL_MS:
        warnings.append(
            f"QUEUE_MIN_INTERVAL_MS below {SHORT_INTERVAL_MS} ms; browser-session backends "
            "may start rejecting requests."
        )
    if settings.stream_timeout is not None and settings.stream_timeout < settings.http_timeout:
        warnings.append(
            "STREAM_TIMEOUT is shorter than PROVIDER_HTTP_TIMEOUT; long replies will be cut off "
            "by the stream deadline."
        )
    return settings


def _check_logging(env: Mapping[str, str], errors: List[str]) -> None:
    level = env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    if level not in LOG_LEVELS:
        errors.append(f"LOG_LEVEL must be one of: {', '.join(sorted(LOG_LEVELS))}, got `{level}`.")

    log_format = env.get("LOG_FORMAT", "json").strip().lower() or "json"
    if log_format not in LOG_FORMATS:
        errors.append(f"LOG_FORMAT must be one of: json, text, got `{log_format}`.")


def _check_base_urls(settings: GatewaySettings, errors: List[str], warnings: List[str]) -> None:
    known = {name.value for name in ProviderName}
    for provider, url in sorted(settings.base_urls.items()):
        key = f"{provider.upper()}_BASE_URL"
        if provider not in known:
            warnings.append(f"`{key}` does not match any provider and is ignored.")
            continue
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as exc:
            errors.append(f"`{key}` is not a valid URL ({exc}).")
            continue
        if parsed.scheme not in {"http", "https"} or not parsed.host:
            errors.append(f"`{key}` must be an absolute http(s) URL, got `{url}`.")


def run_doctor(env: Optional[Mapping[str, str]] = None) -> DoctorResult:
    env_map: Mapping[str, str] = os.environ if env is None else env
    errors: List[str] = []
    warnings: List[str] = []

    _check_python_version(errors)
    _check_logging(env_map, errors)
    settings = _check_settings(env_map, errors, warnings)
    if settings is not None:
        _check_base_urls(settings, errors, warnings)

    messages: List[str] = []
    if errors:
        messages.append("Doctor found configuration issues:")
        for i, msg in enumerate(errors, 1):
            messages.append(f"{i}. {msg}")
        messages.append("Fix the items above and rerun `python scripts/doctor.py`.")
    else:
        messages.append("Doctor checks passed.")

    if warnings:
        messages.append("Warnings:")
        for i, msg in enumerate(warnings, 1):
            messages.append(f"- {msg}")

    return DoctorResult(ok=not errors, messages=messages)


def main() -> int:
    result = run_doctor()
    print("\n".join(result.messages))
    return 0 if result.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
