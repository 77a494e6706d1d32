"""Collect a small sample and print a few diagnostic searches.

Useful as a manual check that credentials, geocoding and description
lookup all work end to end. Run with the project installed or with
PYTHONPATH pointing at the project root.
"""

import json
import logging
import sys

from curtaincall.collector import build_collector
from curtaincall.config import Settings
from curtaincall.search import SearchFilters, search_unified
from curtaincall.store import PerformanceStore

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

limit = int(sys.argv[1]) if len(sys.argv) > 1 else 10
settings = Settings.from_env()
store = PerformanceStore(settings.database_url)
store.create_all()

count = build_collector(settings, store).collect_sample(limit)
print("Collected:", count)

rows = store.all()
missing_coords = [p.id for p in rows if p.latitude is None]
no_content = [p.id for p in rows if p.description == "No contents"]
print(f"Stored: {len(rows)}  without coordinates: {len(missing_coords)}  without description: {len(no_content)}")

res = search_unified(store, SearchFilters(query="감동적인 가족 이야기"), limit=5)
print('\nTOP-5 for "감동적인 가족 이야기":')
print(json.dumps([{"id": r["id"], "title": r["title"], "similarity": r["similarity"]} for r in res], ensure_ascii=False, indent=2))
