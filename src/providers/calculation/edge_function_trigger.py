"""Calculation trigger that invokes the hosted similarity edge function.

POSTs to ``{functions_url}/calculate-artist-similarities`` with either
``{"specificArtistId": <id>}`` or ``{"limit": <n>}``.  The function
computes similarity scores server-side, upserts them into the
``similar_artists`` table and answers::

    {"success": true, "processed": [{"artist_id", "artist_name",
     "similarities_calculated"}], "total_artists_processed": n}

or ``{"success": false, "error": "..."}`` / ``{"error": "..."}`` on
failure.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from src.interfaces.calculation_trigger import ICalculationTrigger
from src.models.similarity import CalculationResult
from src.utils.errors import CalculationError

logger = structlog.get_logger(logger_name=__name__)


class EdgeFunctionTrigger(ICalculationTrigger):
    """Start similarity calculations on the hosted edge-function runtime.

    Parameters
    ----------
    http_client:
        Shared async client.
    functions_url:
        Base URL such as ``https://<project>.supabase.co/functions/v1``.
    api_key:
        Service key sent as the bearer token.
    function_name:
        Name of the deployed function.
    timeout:
        Per-invocation timeout in seconds; calculations can be slow.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        functions_url: str,
        api_key: str,
        function_name: str = "calculate-artist-similarities",
        timeout: float = 120.0,
    ) -> None:
        self._http = http_client
        self._url = f"{functions_url.rstrip('/')}/{function_name}"
        self._api_key = api_key
        self._timeout = timeout

    async def calculate(
        self,
        artist_id: str | None = None,
        limit: int | None = None,
    ) -> CalculationResult:
        body: dict[str, Any] = {}
        if artist_id is not None:
            body["specificArtistId"] = artist_id
        elif limit is not None:
            body["limit"] = limit

        try:
            response = await self._http.post(
                self._url,
                json=body,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("edge_function_unreachable", url=self._url, error=str(exc))
            raise CalculationError(
                message=f"Could not invoke similarity calculation: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            logger.error(
                "edge_function_bad_response",
                status=response.status_code,
                body=response.text[:200],
            )
            return CalculationResult(
                success=False,
                error=f"Calculation function returned HTTP {response.status_code}",
            )

        if not response.is_success:
            error = payload.get("error") or f"Calculation function returned HTTP {response.status_code}"
            logger.error("edge_function_failed", status=response.status_code, error=error)
            return CalculationResult(success=False, error=str(error))

        # No explicit flag: success unless the body carries an error.
        payload.setdefault("success", "error" not in payload)
        # "No artists to process" comes back with a message and no list.
        if payload["success"] and "processed" not in payload and payload.get("message"):
            payload["processed"] = []
        try:
            result = CalculationResult.model_validate(payload)
        except PydanticValidationError as exc:
            logger.error("edge_function_unparseable_result", error=str(exc))
            return CalculationResult(success=False, error="Calculation function returned an invalid result")

        logger.info(
            "edge_function_completed",
            artist_id=artist_id,
            success=result.success,
            processed=result.total_artists_processed,
        )
        return result

    def get_provider_name(self) -> str:
        return "edge_function"
