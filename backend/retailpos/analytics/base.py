from __future__ import annotations

from abc import ABC, abstractmethod

RISK_LEVELS = ("low", "medium", "high", "critical")

MARKET_BASKET_KEYS = ("product_pairs", "product_clusters", "insights", "recommendations")
DEBT_RISK_KEYS = ("risk_level", "risk_score", "factors", "recommendations")
FORECAST_SUGGESTIONS = ("ok", "reorder")
FORECAST_PRODUCT_KEYS = (
    "product_id", "product_name", "current_stock", "forecasted_sales", "suggestion",
    "suggested_reorder_quantity",
)


class AnalyticsError(Exception):
    """The analytics backend failed or returned an unusable answer."""


class AnalyticsBackend(ABC):
    """
    Analytics capability used by the analytics routes.

    analyze_market_basket(transactions)
        transactions: [{"id": ..., "items": ["Product A", "Product B", ...]}]
        returns {"product_pairs", "product_clusters", "insights", "recommendations"}

    predict_debt_risk(profile)
        profile: {"customer_id", "customer_name", "total_debt", "credit_limit",
                  "payment_history": [{"date", "amount"}], "days_since_last_payment",
                  "days_since_first_unpaid_sale"}
        returns {"risk_level", "risk_score", "factors", "recommendations"}

    forecast_sales(request)
        request: {"history_days", "forecast_period_days", "market_context",
                  "sales": [{"product_id", "quantity", "date"}],
                  "inventory": [{"product_id", "product_name", "current_stock"}]}
        returns {"analysis_summary", "forecasted_products": [{"product_id", "product_name",
                 "current_stock", "forecasted_sales", "suggestion", "suggested_reorder_quantity"}]}
    """

    name = "base"

    @abstractmethod
    def analyze_market_basket(self, transactions: list[dict]) -> dict:
        raise NotImplementedError

    @abstractmethod
    def predict_debt_risk(self, profile: dict) -> dict:
        raise NotImplementedError

    @abstractmethod
    def forecast_sales(self, request: dict) -> dict:
        raise NotImplementedError


def validate_market_basket(result) -> dict:
    if not isinstance(result, dict):
        raise AnalyticsError("Market basket result must be an object")
    for key in MARKET_BASKET_KEYS:
        if not isinstance(result.get(key), list):
            raise AnalyticsError(f"Market basket result is missing list '{key}'")
    return result


def validate_debt_risk(result) -> dict:
    if not isinstance(result, dict):
        raise AnalyticsError("Debt risk result must be an object")
    if result.get("risk_level") not in RISK_LEVELS:
        raise AnalyticsError(f"risk_level must be one of: {', '.join(RISK_LEVELS)}")
    score = result.get("risk_score")
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 1:
        raise AnalyticsError("risk_score must be a number between 0 and 1")
    for key in ("factors", "recommendations"):
        if not isinstance(result.get(key), list):
            raise AnalyticsError(f"Debt risk result is missing list '{key}'")
    return result


def _non_negative_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_forecast(result) -> dict:
    if not isinstance(result, dict):
        raise AnalyticsError("Forecast result must be an object")
    if not isinstance(result.get("analysis_summary"), str):
        raise AnalyticsError("Forecast result is missing 'analysis_summary'")
    products = result.get("forecasted_products")
    if not isinstance(products, list):
        raise AnalyticsError("Forecast result is missing list 'forecasted_products'")
    for index, product in enumerate(products):
        if not isinstance(product, dict):
            raise AnalyticsError(f"forecasted_products[{index}] must be an object")
        missing = [key for key in FORECAST_PRODUCT_KEYS if key not in product]
        if missing:
            raise AnalyticsError(f"forecasted_products[{index}] is missing {', '.join(missing)}")
        if product["suggestion"] not in FORECAST_SUGGESTIONS:
            raise AnalyticsError(f"suggestion must be one of: {', '.join(FORECAST_SUGGESTIONS)}")
        for key in ("forecasted_sales", "suggested_reorder_quantity"):
            if not _non_negative_int(product[key]):
                raise AnalyticsError(f"forecasted_products[{index}].{key} must be a non-negative integer")
    return result
