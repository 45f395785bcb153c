"""
Remote analytics over HTTP.

Posts the same payloads the mock backend consumes to an inference
service and validates the response shape before handing it back.

    POST {endpoint}/market-basket  {"transactions": [...]}
    POST {endpoint}/debt-risk      {"profile": {...}}
    POST {endpoint}/sales-forecast {"request": {...}}
"""

from __future__ import annotations

import logging

import httpx

from .base import (
    AnalyticsBackend,
    AnalyticsError,
    validate_debt_risk,
    validate_forecast,
    validate_market_basket,
)

logger = logging.getLogger(__name__)


class HttpAnalyticsBackend(AnalyticsBackend):
    name = "http"

    def __init__(
        self,
        endpoint: str,
        *,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not endpoint:
            raise AnalyticsError("ANALYTICS_ENDPOINT is required for the http analytics backend")
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(
            base_url=endpoint.rstrip("/"),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _post(self, path: str, payload: dict):
        try:
            response = self._client.post(path, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("Analytics request %s failed with status %s", path, e.response.status_code)
            raise AnalyticsError(f"Analytics service returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning("Analytics request %s failed: %s", path, e)
            raise AnalyticsError("Analytics service unavailable") from e
        except ValueError as e:
            raise AnalyticsError("Analytics service returned invalid JSON") from e

    def analyze_market_basket(self, transactions: list[dict]) -> dict:
        return validate_market_basket(self._post("/market-basket", {"transactions": transactions}))

    def predict_debt_risk(self, profile: dict) -> dict:
        return validate_debt_risk(self._post("/debt-risk", {"profile": profile}))

    def forecast_sales(self, request: dict) -> dict:
        return validate_forecast(self._post("/sales-forecast", {"request": request}))
