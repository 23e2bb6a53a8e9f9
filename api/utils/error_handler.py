"""Error handling utilities for API endpoints."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from fastapi import HTTPException, status

from orchestrator.exceptions import InvalidStateError
from orchestrator.log import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


def handle_api_operation(
    operation: Callable[[], T],
    error_message: str = "Operation failed",
) -> T:
    """Handle API operations with consistent error handling.

    Intents that are not valid in the current session state map to 409,
    invalid input to 400 and everything else to 500.
    """
    try:
        return operation()
    except InvalidStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"{error_message}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{error_message}: {str(e)}",
        )


async def handle_async_api_operation(
    operation: Callable[[], Awaitable[T]],
    error_message: str = "Operation failed",
) -> T:
    """Handle async API operations with consistent error handling."""
    try:
        return await operation()
    except InvalidStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"{error_message}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{error_message}: {str(e)}",
        )
