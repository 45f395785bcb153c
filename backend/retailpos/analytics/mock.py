"""
In-process analytics heuristics.

Deterministic: the same input always yields the same output, so it is
the default backend for development and tests.
"""

from __future__ import annotations

from collections import Counter
from itertools import combinations

from .base import AnalyticsBackend

# Minimum number of baskets an itemset must appear in to be reported
MIN_SUPPORT_COUNT = 2
MAX_PAIRS = 20
MAX_CLUSTERS = 10
# Extra stock ordered on top of the forecast deficit, as a percentage of the forecast
SAFETY_STOCK_PERCENT = 20


def _baskets(transactions: list[dict]) -> list[tuple[str, ...]]:
    baskets = []
    for txn in transactions:
        items = sorted({str(item) for item in (txn.get("items") or []) if item})
        if items:
            baskets.append(tuple(items))
    return baskets


def _risk_level(score: float) -> str:
    if score < 0.25:
        return "low"
    if score < 0.5:
        return "medium"
    if score < 0.75:
        return "high"
    return "critical"


class MockAnalyticsBackend(AnalyticsBackend):
    name = "mock"

    def analyze_market_basket(self, transactions: list[dict]) -> dict:
        baskets = _baskets(transactions)
        total = len(baskets)

        item_counts: Counter = Counter()
        pair_counts: Counter = Counter()
        triple_counts: Counter = Counter()
        for basket in baskets:
            item_counts.update(basket)
            pair_counts.update(combinations(basket, 2))
            triple_counts.update(combinations(basket, 3))

        pairs = []
        for (a, b), count in pair_counts.items():
            if count < MIN_SUPPORT_COUNT:
                continue
            support = count / total
            confidence = count / item_counts[a]
            lift = confidence / (item_counts[b] / total)
            pairs.append({
                "product_1": a,
                "product_2": b,
                "count": count,
                "support": round(support, 4),
                "confidence": round(confidence, 4),
                "lift": round(lift, 4),
            })
        pairs.sort(key=lambda p: (-p["count"], -p["lift"], p["product_1"], p["product_2"]))
        pairs = pairs[:MAX_PAIRS]

        clusters = [
            {"name": " + ".join(items), "products": list(items), "frequency": count}
            for items, count in triple_counts.items()
            if count >= MIN_SUPPORT_COUNT
        ]
        clusters.sort(key=lambda c: (-c["frequency"], c["products"]))
        clusters = clusters[:MAX_CLUSTERS]

        insights = [f"Analyzed {total} transactions with {len(item_counts)} distinct products"]
        recommendations = []
        if pairs:
            top = pairs[0]
            insights.append(
                f"{top['product_1']} and {top['product_2']} were bought together "
                f"in {top['count']} transactions"
            )
            for pair in pairs[:3]:
                recommendations.append(
                    f"Place {pair['product_1']} near {pair['product_2']} or offer them as a bundle"
                )
        else:
            insights.append("No product combinations were bought together often enough to report")
        if clusters:
            insights.append(f"{len(clusters)} recurring 3-product baskets found")

        return {
            "product_pairs": pairs,
            "product_clusters": clusters,
            "insights": insights,
            "recommendations": recommendations,
        }

    def predict_debt_risk(self, profile: dict) -> dict:
        debt = int(profile.get("total_debt") or 0)
        limit = int(profile.get("credit_limit") or 0)
        days_since_payment = profile.get("days_since_last_payment")
        days_unpaid = profile.get("days_since_first_unpaid_sale")

        if debt <= 0:
            return {
                "risk_level": "low",
                "risk_score": 0.0,
                "factors": ["No outstanding debt"],
                "recommendations": [],
            }

        factors = []
        recommendations = []
        score = 0.0

        utilisation = debt / limit if limit > 0 else 1.0
        score += min(utilisation, 1.0) * 0.5
        factors.append(f"Credit utilisation {utilisation:.0%}" if limit > 0 else "Debt without a credit limit")

        if debt > limit:
            score += 0.2
            factors.append("Debt exceeds credit limit")
            recommendations.append("Suspend further credit sales until the balance is reduced")

        if days_since_payment is None:
            score += 0.2
            factors.append("No payment on record")
            recommendations.append("Contact the customer to agree a first payment")
        elif days_since_payment > 90:
            score += 0.3
            factors.append(f"No payment for {days_since_payment} days")
            recommendations.append("Escalate collection and review the credit limit")
        elif days_since_payment > 30:
            score += 0.15
            factors.append(f"Last payment {days_since_payment} days ago")
            recommendations.append("Send a payment reminder")

        if days_unpaid is not None and days_unpaid > 60:
            score += 0.1
            factors.append(f"Oldest unpaid purchase is {days_unpaid} days old")

        score = round(min(score, 1.0), 2)
        return {
            "risk_level": _risk_level(score),
            "risk_score": score,
            "factors": factors,
            "recommendations": recommendations,
        }

    def forecast_sales(self, request: dict) -> dict:
        """
        Straight-line forecast: average daily sales over the history window
        carried forward over the forecast period.
        """
        history_days = max(int(request.get("history_days") or 1), 1)
        period_days = max(int(request.get("forecast_period_days") or 1), 1)

        sold: Counter = Counter()
        for line in request.get("sales") or []:
            sold[line.get("product_id")] += int(line.get("quantity") or 0)

        products = []
        for item in request.get("inventory") or []:
            stock = int(item.get("current_stock") or 0)
            # Integer ceiling division keeps the forecast exact
            forecast = -(-sold[item.get("product_id")] * period_days // history_days)
            if forecast > stock:
                suggestion = "reorder"
                reorder = forecast - stock - (-forecast * SAFETY_STOCK_PERCENT // 100)
            else:
                suggestion, reorder = "ok", 0
            products.append({
                "product_id": item.get("product_id"),
                "product_name": item.get("product_name"),
                "current_stock": stock,
                "forecasted_sales": forecast,
                "suggestion": suggestion,
                "suggested_reorder_quantity": reorder,
            })
        products.sort(key=lambda p: (p["suggestion"] != "reorder", -p["forecasted_sales"], str(p["product_name"])))

        to_reorder = sum(1 for p in products if p["suggestion"] == "reorder")
        summary = (
            f"Forecast for the next {period_days} days from {history_days} days of sales: "
            f"{to_reorder} of {len(products)} products need reordering"
        )
        if request.get("market_context"):
            summary += ". Market context was not factored into this forecast"
        return {"analysis_summary": summary, "forecasted_products": products}
