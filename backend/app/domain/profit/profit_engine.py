"""
Profit Engine (Domain Logic).

Derives the financial fields the API exposes:
- Trip.netProfit      = customerPayment - sum(expenses)
- Truck.resaleProfit  = sale.price - (purchasePrice + sum(expenses) + commission)

All functions are pure and total. Bad numbers degrade to zero, they never
raise and never return NaN. The only raising paths are the ad-hoc
calculators, which reject requests that omit a required input entirely.
"""

from typing import Any, Dict, Mapping, Optional

from backend.app.core.exceptions import InvalidInputError
from backend.app.domain.profit.expenses import (
    is_real_number,
    numeric_or_none,
    numeric_or_zero,
    sum_expenses,
)


def _margin(net_profit: float, base: float) -> float:
    if base > 0:
        return round(net_profit / base * 100, 2)
    return 0.0


class ProfitEngine:

    @staticmethod
    def compute_trip_net_profit(customer_payment: Any, expenses: Optional[Mapping[str, Any]]) -> float:
        """
        Net profit of a trip.

        Args:
            customer_payment: Amount billed to the customer (coerced, missing = 0)
            expenses: Trip expense set (missing / non-numeric values = 0)

        Returns:
            customer_payment - total expenses
        """
        return numeric_or_zero(customer_payment) - sum_expenses(expenses)

    @staticmethod
    def compute_truck_resale_profit(
        purchase_price: Any,
        expenses: Optional[Mapping[str, Any]],
        sale: Optional[Mapping[str, Any]]
    ) -> Optional[float]:
        """
        Resale profit of a truck, or None while the sale is incomplete.

        None (not 0) means "not sold yet / data missing", which keeps it
        distinct from a sale that broke even.

        Args:
            purchase_price: Must be an actual number for a result
            expenses: Truck expense set
            sale: Sale record; must carry a non-null "price"

        Returns:
            sale.price - (purchase_price + total expenses + commission), or None
        """
        if not sale or sale.get("price") is None or not is_real_number(purchase_price):
            return None

        price = numeric_or_none(sale.get("price"))
        if price is None:
            return 0.0

        commission = numeric_or_zero(sale.get("commission"))
        return price - (float(purchase_price) + sum_expenses(expenses) + commission)

    @staticmethod
    def compute_ad_hoc_trip_profit(expenses: Optional[Mapping[str, Any]], customer_payment: Any) -> Dict[str, float]:
        """
        What-if calculation for a trip that is not persisted.

        Raises:
            InvalidInputError: if expenses or customer_payment is absent (zero is fine)
        """
        if expenses is None or customer_payment is None:
            raise InvalidInputError(
                "Expenses and customer payment are required",
                details={"missing": [
                    name for name, value in (("expenses", expenses), ("customerPayment", customer_payment))
                    if value is None
                ]}
            )

        total_expenses = sum_expenses(expenses)
        payment = numeric_or_zero(customer_payment)
        net_profit = ProfitEngine.compute_trip_net_profit(payment, expenses)

        return {
            "total_expenses": total_expenses,
            "net_profit": net_profit,
            "profit_margin": _margin(net_profit, payment),
        }

    @staticmethod
    def compute_ad_hoc_truck_profit(
        purchase_price: Any,
        expenses: Optional[Mapping[str, Any]],
        sale_price: Any,
        commission: Any = None
    ) -> Dict[str, float]:
        """
        What-if resale calculation for a truck that is not persisted.

        Margin is relative to the purchase price.

        Raises:
            InvalidInputError: if purchase_price or sale_price is absent (zero is fine)
        """
        if purchase_price is None or sale_price is None:
            raise InvalidInputError(
                "Purchase price and sale price are required",
                details={"missing": [
                    name for name, value in (("purchasePrice", purchase_price), ("salePrice", sale_price))
                    if value is None
                ]}
            )

        total_expenses = sum_expenses(expenses)
        purchase = numeric_or_zero(purchase_price)
        net_profit = numeric_or_zero(sale_price) - (purchase + total_expenses + numeric_or_zero(commission))

        return {
            "total_expenses": total_expenses,
            "net_profit": net_profit,
            "profit_margin": _margin(net_profit, purchase),
        }
