"""Decorators for the MCP Gmail gateway."""

import functools
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

from fastmcp.server.dependencies import get_http_request

from .logging import bind_request_context, logger, reset_request_context

P = ParamSpec("P")
R = TypeVar("R")

# Message content is not written to the debug log
REDACTED_ARGUMENTS = frozenset({"body", "html_body"})


def current_caller() -> tuple[str | None, str | None]:
    """Return ``(user_id, client_id)`` set by the bearer middleware, if any."""
    try:
        request = get_http_request()
    except RuntimeError:
        return None, None
    state = request.state
    return getattr(state, "user_id", None), getattr(state, "client_id", None)


def loggable_arguments(kwargs: dict[str, Any]) -> dict[str, Any]:
    return {
        name: "<redacted>" if name in REDACTED_ARGUMENTS and value else value
        for name, value in kwargs.items()
    }


def track_request(
    tool_name: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator to track MCP tool calls.

    Binds a short request id and the caller's user/client ids to the logging
    context for the duration of the call, and logs start, outcome and timing.

    Args:
        tool_name: Name of the tool being tracked

    Returns:
        Decorated function with request tracking
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            user_id, client_id = current_caller()
            tokens = bind_request_context(uuid.uuid4().hex[:8], user_id, client_id)
            started = time.perf_counter()

            logger.info("Starting %s", tool_name)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("Arguments: %s", loggable_arguments(kwargs))

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    "Failed %s after %.2fs: %s",
                    tool_name,
                    time.perf_counter() - started,
                    e,
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
                raise
            else:
                logger.info("Completed %s in %.2fs", tool_name, time.perf_counter() - started)
                return result
            finally:
                reset_request_context(tokens)

        return wrapper

    return decorator
