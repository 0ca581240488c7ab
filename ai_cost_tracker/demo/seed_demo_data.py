# ai_cost_tracker/demo/seed_demo_data.py

from datetime import date
from typing import List

from ai_cost_tracker.core.utils import shift_months
from ai_cost_tracker.store.cost_store import CostSourceStore


def demo_sources(today: date = None) -> List[dict]:
    """A small mix of API, subscription, hardware and one-time costs."""
    today = today or date.today()
    return [
        {
            "name": "OpenAI API",
            "type": "api",
            "provider": "openai",
            "billingMode": "monthly",
            "cost": 120.0,
            "currency": "USD",
            "startDate": shift_months(today, -5).isoformat(),
        },
        {
            "name": "Claude Pro",
            "type": "subscription",
            "provider": "anthropic",
            "billingMode": "monthly",
            "cost": 20.0,
            "currency": "USD",
            "startDate": shift_months(today, -3).isoformat(),
        },
        {
            "name": "GPU workstation",
            "type": "hardware",
            "billingMode": "yearly",
            "cost": 3650.0,
            "currency": "USD",
            "startDate": shift_months(today, -12).isoformat(),
            "description": "RTX 4090 box, amortized over a year",
        },
        {
            "name": "MiniMax coding plan",
            "type": "api",
            "provider": "minimax",
            "billingMode": "daily",
            "cost": 1.5,
            "currency": "USD",
            "startDate": shift_months(today, -1).isoformat(),
        },
        {
            "name": "Dataset license",
            "type": "one-time",
            "billingMode": "one-time",
            "cost": 300.0,
            "currency": "USD",
            "startDate": today.replace(day=1).isoformat(),
            "isEnabled": False,
        },
    ]


def seed_demo_sources(store: CostSourceStore, today: date = None) -> List[str]:
    """Import the demo sources into ``store`` and return their ids."""
    return store.import_sources(demo_sources(today))


if __name__ == "__main__":
    from ai_cost_tracker.storage.kv import SQLiteKeyValueStore
    from ai_cost_tracker.storage.repository import CostTrackerRepository

    store = CostSourceStore(CostTrackerRepository(SQLiteKeyValueStore()))
    seed_demo_sources(store)
    print("Demo cost sources inserted")
