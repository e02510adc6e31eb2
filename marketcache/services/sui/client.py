"""
Sui JSON-RPC Client

Async wrapper around the Sui fullnode JSON-RPC API, limited to the read
primitives the market cache needs:
- object reads (sui_getObject)
- simulated Move calls (sui_devInspectTransactionBlock)

Failures are raised as FetchFailure / DecodeFailure and never retried here;
the Error tier of the cache decides when the next attempt may happen.
"""

import base64
import itertools
from typing import Optional, List, Dict, Any
import httpx
from loguru import logger

from marketcache.core.config import settings
from marketcache.services.sui.bcs import (
    CallInput,
    encode_move_call_kind,
    normalize_address,
)
from marketcache.services.sui.errors import (
    ErrorCategory,
    FetchFailure,
    NetworkError,
    RateLimitError,
    DecodeFailure,
    categorize_error,
)


class SuiRpcClient:
    """
    Async client for the Sui JSON-RPC API.

    Example:
        ```python
        client = SuiRpcClient()

        market = await client.get_object("0x1b98...")
        values = await client.dev_inspect_move_call(
            function="get_market_timing",
            type_arguments=[settings.usdc_type],
            inputs=[SharedObjectInput("0x1b98...", 42)],
        )
        await client.close()
        ```
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        timeout: Optional[float] = None,
        sender: Optional[str] = None
    ):
        """
        Initialize Sui RPC client.

        Args:
            rpc_url: Fullnode JSON-RPC endpoint
            timeout: Request timeout in seconds
            sender: Address used as sender for simulated calls
        """
        self.rpc_url = rpc_url or settings.SUI_RPC_URL
        self.sender = sender or settings.DEFAULT_SENDER

        self.client = httpx.AsyncClient(
            timeout=timeout or settings.SUI_RPC_TIMEOUT,
            headers={
                "Content-Type": "application/json",
                "User-Agent": f"SkepsisMarketCache/{settings.APP_VERSION}"
            }
        )

        self._request_ids = itertools.count(1)
        # initial_shared_version never changes for a shared object
        self._shared_versions: Dict[str, int] = {}

        logger.info(f"SuiRpcClient initialized (rpc_url={self.rpc_url})")

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def _request(self, method: str, params: List[Any]) -> Any:
        """
        Make a JSON-RPC call.

        Args:
            method: JSON-RPC method name
            params: Positional parameters

        Returns:
            The "result" member of the response

        Raises:
            NetworkError: On transport failure or timeout
            RateLimitError: On HTTP 429 or a rate-limit RPC error
            FetchFailure: On any other RPC error
            DecodeFailure: On a malformed response body
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }

        try:
            response = await self.client.post(self.rpc_url, json=payload)
        except httpx.TimeoutException as e:
            raise NetworkError(f"RPC {method} timed out: {e}")
        except httpx.HTTPError as e:
            raise NetworkError(f"RPC {method} failed: {e}")

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                f"Rate limited on {method}",
                retry_after=float(retry_after) if retry_after else None,
                status_code=429
            )

        if response.status_code >= 400:
            raise FetchFailure(
                f"RPC {method} returned HTTP {response.status_code}",
                category=categorize_error(response.status_code),
                status_code=response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            raise DecodeFailure(f"RPC {method} returned invalid JSON: {e}")

        if not isinstance(body, dict):
            raise DecodeFailure(f"RPC {method} returned a non-object body: {body!r}")

        error = body.get("error")
        if error:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            category = categorize_error(response.status_code, error)
            message = f"RPC {method} error: {error.get('message', error)}"
            if category == ErrorCategory.RATE_LIMIT:
                raise RateLimitError(message, response_data=error)
            if category == ErrorCategory.DECODE:
                raise DecodeFailure(message, response_data=error)
            raise FetchFailure(message, category=category, response_data=error)

        if "result" not in body:
            raise DecodeFailure(f"RPC {method} response has no result")

        return body["result"]

    async def get_object(
        self,
        object_id: str,
        show_content: bool = True,
        show_owner: bool = False
    ) -> Dict[str, Any]:
        """
        Read an object.

        Returns:
            The raw SuiObjectResponse ({"data": ...} or {"error": ...})
        """
        options = {"showContent": show_content, "showOwner": show_owner}
        response = await self._request("sui_getObject", [object_id, options])
        if not isinstance(response, dict):
            raise DecodeFailure(f"Malformed object response for {object_id}", market_id=object_id)
        return response

    async def get_initial_shared_version(self, object_id: str) -> int:
        """
        Get the initial shared version of a shared object.

        Raises:
            DecodeFailure: If the object does not exist or is not shared
        """
        key = normalize_address(object_id)
        if key in self._shared_versions:
            return self._shared_versions[key]

        response = await self.get_object(object_id, show_content=False, show_owner=True)
        data = response.get("data")
        owner = data.get("owner") if isinstance(data, dict) else None

        if not isinstance(owner, dict) or "Shared" not in owner:
            raise DecodeFailure(
                f"Object {object_id} is not a shared object",
                market_id=object_id
            )

        try:
            version = int(owner["Shared"]["initial_shared_version"])
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeFailure(f"Malformed owner for {object_id}: {e}", market_id=object_id)

        self._shared_versions[key] = version
        return version

    async def dev_inspect(self, tx_bytes: bytes, sender: Optional[str] = None) -> Dict[str, Any]:
        """Simulate a TransactionKind without executing it."""
        encoded = base64.b64encode(tx_bytes).decode("ascii")
        return await self._request(
            "sui_devInspectTransactionBlock",
            [sender or self.sender, encoded, None, None]
        )

    async def dev_inspect_move_call(
        self,
        function: str,
        type_arguments: List[str],
        inputs: List[CallInput],
        package: Optional[str] = None,
        module: Optional[str] = None
    ) -> List[List[int]]:
        """
        Simulate a single Move call and return the raw bytes of each return value.

        Raises:
            FetchFailure: If the simulated execution failed
            DecodeFailure: If the call produced no return values
        """
        tx_bytes = encode_move_call_kind(
            package=package or settings.DISTRIBUTION_MARKET_PACKAGE,
            module=module or settings.DISTRIBUTION_MARKET_MODULE,
            function=function,
            type_arguments=type_arguments,
            inputs=inputs,
        )

        result = await self.dev_inspect(tx_bytes)
        if not isinstance(result, dict):
            raise DecodeFailure(f"Malformed dev-inspect result for {function}")

        effects = result.get("effects")
        status = effects.get("status") if isinstance(effects, dict) else None
        if not isinstance(status, dict):
            status = {}
        if result.get("error") or status.get("status", "success") != "success":
            raise FetchFailure(
                f"Simulated call {function} failed: {result.get('error') or status.get('error')}",
                response_data=result
            )

        results = result.get("results")
        if (
            not isinstance(results, list) or not results
            or not isinstance(results[0], dict) or not results[0].get("returnValues")
        ):
            raise DecodeFailure(f"Simulated call {function} returned no values")

        try:
            return [list(value[0]) for value in results[0]["returnValues"]]
        except (IndexError, TypeError) as e:
            raise DecodeFailure(f"Malformed return values from {function}: {e}")
