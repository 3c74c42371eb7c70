"""
Decorators for DynamoDB record store methods.

Applied outermost first:

    @monitor_performance(...)
    @dynamodb_operation("persist")
    @retry_on_throttle(...)
    def persist(self, mutations): ...

so throttled calls are retried before any error is translated, and the
timing covers the retries.
"""

import logging
import time
from functools import wraps
from typing import Callable, Optional, Tuple, TypeVar

from botocore.exceptions import ClientError
from pydantic import ValidationError

from billcycle.exceptions import StorageError

logger = logging.getLogger(__name__)

T = TypeVar('T')

THROTTLING_ERROR_CODES = (
    'ProvisionedThroughputExceededException',
    'ThrottlingException',
    'RequestLimitExceeded',
)


def client_error_details(error: ClientError) -> Tuple[str, str]:
    """(code, message) of a botocore ClientError."""
    details = error.response.get('Error', {})
    return details.get('Code', 'Unknown'), details.get('Message', str(error))


def dynamodb_operation(operation_name: Optional[str] = None):
    """
    Translate storage failures of a record store method into StorageError.

    ClientError and pydantic ValidationError (an item that no longer parses
    into a model) are logged with stack traces and re-raised as StorageError
    tagged with the operation name. StorageError raised inside passes through
    untouched; any other exception propagates as is.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        op_name = operation_name or func.__name__

        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            logger.debug(f"Record store operation {op_name} starting")
            try:
                return func(*args, **kwargs)
            except StorageError:
                raise
            except ClientError as e:
                code, message = client_error_details(e)
                logger.error(
                    f"DynamoDB rejected {op_name}: {code} - {message}",
                    exc_info=True,
                    extra={'operation': op_name, 'error_code': code}
                )
                raise StorageError(f"{op_name} failed: {code} - {message}", operation=op_name) from e
            except ValidationError as e:
                logger.error(
                    f"Stored record failed validation in {op_name}: {str(e)}",
                    exc_info=True,
                    extra={'operation': op_name}
                )
                raise StorageError(f"Invalid data in {op_name}: {str(e)}", operation=op_name) from e
        return wrapper
    return decorator


def backoff_delay(attempt: int, base_delay: float, exponential_base: float, max_delay: float) -> float:
    """Seconds to wait after the given zero-based failed attempt."""
    return min(base_delay * (exponential_base ** attempt), max_delay)


def retry_on_throttle(
    max_attempts: int = 3,
    base_delay: float = 0.1,
    max_delay: float = 5.0,
    exponential_base: float = 2,
    retry_on: Tuple[str, ...] = THROTTLING_ERROR_CODES
):
    """
    Retry a DynamoDB call on throttling with exponential backoff.

    Waits 0.1s, 0.2s, 0.4s ... (capped at max_delay) between attempts. The
    last throttling error, or any non-throttling ClientError, is raised
    unchanged. A throttled TransactWriteItems has written nothing, so
    retrying persist is safe.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except ClientError as e:
                    code, _ = client_error_details(e)
                    if code not in retry_on or attempt + 1 >= max_attempts:
                        raise
                    delay = backoff_delay(attempt, base_delay, exponential_base, max_delay)
                    logger.warning(
                        f"{func.__name__} throttled with {code} "
                        f"(attempt {attempt + 1}/{max_attempts}), retrying in {delay:.2f}s"
                    )
                    time.sleep(delay)
                    attempt += 1
        return wrapper
    return decorator


def monitor_performance(
    operation_type: str = "db_operation",
    warn_threshold_ms: float = 1000,
    error_threshold_ms: float = 5000
):
    """
    Log the elapsed time of a record store call.

    Debug below warn_threshold_ms, warning up to error_threshold_ms, error
    beyond. Failed calls are timed too.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            started = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - started) * 1000
                context = {
                    'operation': func.__name__,
                    'operation_type': operation_type,
                    'elapsed_ms': elapsed_ms
                }
                if elapsed_ms > error_threshold_ms:
                    logger.error(
                        f"Very slow {operation_type}: {func.__name__} took {elapsed_ms:.2f}ms "
                        f"(limit {error_threshold_ms}ms)",
                        extra=context
                    )
                elif elapsed_ms > warn_threshold_ms:
                    logger.warning(
                        f"Slow operation: {func.__name__} took {elapsed_ms:.2f}ms "
                        f"(limit {warn_threshold_ms}ms)",
                        extra=context
                    )
                else:
                    logger.debug(f"{func.__name__} took {elapsed_ms:.2f}ms", extra=context)
        return wrapper
    return decorator
