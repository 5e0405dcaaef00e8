"""Order handling."""

import json
from dataclasses import dataclass

TAX_RATE = 0.2


@dataclass
class Order:
    order_id: int
    amount: float

    def total_with_tax(self):
        return self.amount * (1 + TAX_RATE)


def load_orders(path):
    with open(path) as handle:
        rows = json.load(handle)
    return [Order(r["id"], r["amount"]) for r in rows if r and r.get("amount")]
