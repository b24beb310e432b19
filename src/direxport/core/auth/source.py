"""Per-operation bearer token acquisition under the token retry policy."""

from __future__ import annotations

from typing import TYPE_CHECKING

from direxport.core.fetch.retries import Result

if TYPE_CHECKING:
    from direxport.core.auth.providers import TokenProvider
    from direxport.core.fetch.retries import RetryExecutor, RetryPolicy

TOKEN_OPERATION_PREFIX = "acquire_token"


def is_token_operation(operation: str) -> bool:
    return operation.startswith(TOKEN_OPERATION_PREFIX)


class TokenSource:
    """Fetches a fresh token for every logical operation.

    Tokens are short-lived and never cached here.
    """

    def __init__(
        self,
        provider: TokenProvider,
        executor: RetryExecutor,
        policy: RetryPolicy,
        identity_ref: str | None = None,
    ):
        self.provider = provider
        self.executor = executor
        self.policy = policy
        self.identity_ref = identity_ref

    async def acquire(self, resource: str) -> Result[dict[str, str]]:
        """Obtain an Authorization header for ``resource``."""
        result = await self.executor.execute(
            lambda: self.provider.get_token(resource, self.identity_ref),
            self.policy,
            f"{TOKEN_OPERATION_PREFIX}:{resource}",
        )
        if not result.ok:
            return Result.failure(result.fault, result.cause)
        return Result.success({"Authorization": f"Bearer {result.value}"})

    async def authorization(self, resource: str) -> dict[str, str]:
        """Like acquire, but raise TerminalFailure on failure."""
        return (await self.acquire(resource)).unwrap()
