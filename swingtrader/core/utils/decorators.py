"""
Utility decorators for input validation and operation logging.
"""

import functools
import inspect
import time
import uuid
from collections.abc import Callable
from typing import Any

from loguru import logger

from swingtrader.core.exceptions.engine import ValidationError
from swingtrader.core.utils.validation import validate_positive, validate_symbol

_CONTEXT_PARAMS = ("symbol", "action", "quantity", "price", "days")
_NUMERIC_PARAMS = ("quantity", "price")


def _bind_arguments(
    func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
) -> inspect.BoundArguments:
    bound_args = inspect.signature(func).bind(*args, **kwargs)
    bound_args.apply_defaults()
    return bound_args


def _validate_parameter(param_name: str, value: Any, bound_args: inspect.BoundArguments) -> None:
    """Validate a single trading parameter in place."""
    if value is None:
        return
    if param_name == "symbol":
        bound_args.arguments[param_name] = validate_symbol(value)
    elif param_name in _NUMERIC_PARAMS:
        try:
            bound_args.arguments[param_name] = validate_positive(value, param_name)
        except TypeError as e:
            raise ValidationError(f"Invalid {param_name}: {e}") from e


def validate_inputs[F: Callable[..., Any]](func: F) -> F:
    """Decorator to validate and normalize symbol, quantity and price arguments."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        bound_args = _bind_arguments(func, args, kwargs)
        for param_name, value in bound_args.arguments.items():
            if param_name != "self":
                _validate_parameter(param_name, value, bound_args)
        return func(*bound_args.args, **bound_args.kwargs)

    return wrapper  # type: ignore


def _serialize_parameter_value(value: Any) -> Any:
    """Serialize parameter value for logging."""
    if hasattr(value, "value") and hasattr(value, "name"):
        return str(value.value)  # Handle enum values
    return value


def _extract_context(bound_args: inspect.BoundArguments) -> dict[str, Any]:
    """Pull trading context out of the call, including from a signal argument."""
    context: dict[str, Any] = {}
    for param_name, value in bound_args.arguments.items():
        if param_name == "self":
            continue
        if param_name in _CONTEXT_PARAMS:
            context[param_name] = _serialize_parameter_value(value)
        elif param_name == "signal" and value is not None:
            context["symbol"] = getattr(value, "symbol", None)
            context["action"] = _serialize_parameter_value(getattr(value, "action", None))
    return context


def _setup_logging_context(
    func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
) -> dict[str, Any]:
    correlation_id = str(uuid.uuid4())[:8]
    return {
        "correlation_id": correlation_id,
        "timestamp": str(time.time()),
        **_extract_context(_bind_arguments(func, args, kwargs)),
    }


def _log_success(func_name: str, context: dict[str, Any], start_time: float, result: Any) -> None:
    execution_time_ms = (time.perf_counter() - start_time) * 1000
    success_context = {
        **context,
        "success": True,
        "execution_time_ms": round(execution_time_ms, 2),
        "result_type": type(result).__name__,
    }
    if isinstance(result, bool | int | float | str):
        success_context["result"] = result
    elif hasattr(result, "ok"):
        success_context["result"] = bool(result.ok)
    elif hasattr(result, "success"):
        success_context["result"] = bool(result.success)
    logger.success(f"Operation completed: {func_name}", extra=success_context)


def _log_failure(func_name: str, context: dict[str, Any], start_time: float, error: Exception) -> None:
    execution_time_ms = (time.perf_counter() - start_time) * 1000
    error_context = {
        **context,
        "success": False,
        "execution_time_ms": round(execution_time_ms, 2),
        "error_type": type(error).__name__,
        "error_message": str(error),
    }
    logger.error(f"Operation failed: {func_name}", extra=error_context)


def log_operation[F: Callable[..., Any]](func: F) -> F:
    """Decorator to log engine operations with correlation IDs.

    Works on both plain functions and coroutines; exceptions are logged and
    re-raised unchanged.
    """
    func_name = func.__name__

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            context = _setup_logging_context(func, args, kwargs)
            logger.debug(f"Operation started: {func_name}", extra=context)
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _log_failure(func_name, context, start_time, e)
                raise
            _log_success(func_name, context, start_time, result)
            return result

        return async_wrapper  # type: ignore

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        context = _setup_logging_context(func, args, kwargs)
        logger.debug(f"Operation started: {func_name}", extra=context)
        start_time = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            _log_failure(func_name, context, start_time, e)
            raise
        _log_success(func_name, context, start_time, result)
        return result

    return wrapper  # type: ignore
