"""
Logging configuration for the NCNG template saver.

Simple setup that adapters and tools can import.
naming.py and state.py should NOT log (they're pure functions).
"""

import logging
import sys

# Create logger for the package
logger = logging.getLogger("ncng")


def configure_logging(level: str = "INFO") -> None:
    """
    Configure logging for the template saver.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    logger.setLevel(getattr(logging, level.upper()))

    # Only add handler if not already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)

        # stderr keeps stdout clean for MCP stdio and CLI JSON output
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)


# NOTE: Call configure_logging() explicitly in server.py, cli.py or auth.py.
# We don't auto-configure to avoid side effects on import.


# OAuth parameter names whose values are masked if they reach a log line
_SECRET_PARAMS = frozenset({"token", "access_token", "refresh_token", "code", "code_verifier"})


def _format_params(params: dict[str, object]) -> str:
    return ", ".join(
        f"{k}='***'" if k in _SECRET_PARAMS else f"{k}={v!r}"
        for k, v in params.items() if v is not None
    )


# Convenience functions for common patterns
def log_api_call(service: str, method: str, **params: object) -> None:
    """Log an API call with key parameters. Token-like parameters are masked."""
    param_str = _format_params(params)
    logger.debug(f"API: {service}.{method}({param_str})")


def log_api_result(service: str, method: str, result_count: int | None = None) -> None:
    """Log API result summary."""
    if result_count is not None:
        logger.debug(f"API: {service}.{method} returned {result_count} results")
    else:
        logger.debug(f"API: {service}.{method} completed")


def log_retry(attempt: int, max_attempts: int, delay_ms: int, reason: str) -> None:
    """Log a retry attempt."""
    logger.warning(
        f"Retry {attempt}/{max_attempts} in {delay_ms}ms: {reason}"
    )


def log_step(previous: str, current: str, **context: object) -> None:
    """
    Log a provisioning step transition, e.g. "resolving_folder -> copying_template".

    The failed state logs at WARNING, everything else at INFO.
    """
    level = logging.WARNING if current == "failed" else logging.INFO
    detail = _format_params(context)
    logger.log(level, f"Provision: {previous} -> {current}" + (f" ({detail})" if detail else ""))
