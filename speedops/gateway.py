"""
Gateway Resilience

Wraps any EntityStoreGateway with an explicit per-call timeout and bounded
retry with exponential backoff. Only transient failures (StoreUnavailableError
and timeouts) are retried; stale writes, missing documents and any other
error propagate on the first attempt.

add() is never retried because a retry after an unacknowledged success would
insert a duplicate document.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from .errors import GatewayTimeoutError, StoreUnavailableError
from .store import EntityStoreGateway, Subscription

logger = logging.getLogger("store_gateway")

T = TypeVar("T")

# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE = 0.5

NO_RETRY_OPERATIONS = {"add"}


class ResilientGateway(EntityStoreGateway):
    """Timeout and retry policy applied at the store boundary."""

    def __init__(
        self,
        inner: EntityStoreGateway,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.inner = inner
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base

    async def _call(self, operation: str, path: str, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Run one store operation under the timeout/retry policy.

        Args:
            operation: Operation name, used for logging and retry decisions
            path: Document or collection path, for logging
            factory: Zero-argument callable producing a fresh awaitable per attempt
        """
        max_attempts = 1 if operation in NO_RETRY_OPERATIONS else self.max_attempts
        last_error: Optional[Exception] = None

        for attempt in range(max_attempts):
            try:
                return await asyncio.wait_for(factory(), timeout=self.timeout)
            except asyncio.TimeoutError:
                last_error = GatewayTimeoutError(
                    f"{operation} {path} timed out after {self.timeout}s", path=path
                )
                logger.warning(
                    f"Timeout on attempt {attempt + 1}/{max_attempts} for {operation} {path}"
                )
            except StoreUnavailableError as e:
                last_error = e
                logger.warning(
                    f"Store unavailable on attempt {attempt + 1}/{max_attempts} for {operation} {path}: {e}"
                )

            if attempt < max_attempts - 1:
                backoff = self.backoff_base * (2 ** attempt)
                logger.info(f"Retrying {operation} {path} in {backoff}s...")
                await asyncio.sleep(backoff)

        logger.error(f"{operation} {path} failed after {max_attempts} attempts: {last_error}")
        raise last_error

    # -------------------------------------------------------------------------
    # Delegated Operations
    # -------------------------------------------------------------------------

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        return await self._call("get", path, lambda: self.inner.get(path))

    async def get_version(self, path: str) -> int:
        return await self._call("get_version", path, lambda: self.inner.get_version(path))

    async def put(
        self,
        path: str,
        document: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> int:
        return await self._call(
            "put", path, lambda: self.inner.put(path, document, expected_version=expected_version)
        )

    async def update(
        self,
        path: str,
        partial: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> int:
        return await self._call(
            "update", path, lambda: self.inner.update(path, partial, expected_version=expected_version)
        )

    async def delete(self, path: str) -> None:
        await self._call("delete", path, lambda: self.inner.delete(path))

    async def add(self, collection_path: str, document: Dict[str, Any]) -> str:
        return await self._call("add", collection_path, lambda: self.inner.add(collection_path, document))

    async def query(
        self,
        collection_path: str,
        where: Optional[Tuple[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return await self._call(
            "query",
            collection_path,
            lambda: self.inner.query(
                collection_path, where=where, order_by=order_by, descending=descending, limit=limit
            ),
        )

    def subscribe(self, collection_path: str) -> Subscription:
        return self.inner.subscribe(collection_path)
