"""Command-line entry points for collecting and querying performances."""
import argparse
import logging
import sys

from .collector import build_collector
from .config import Settings
from .indexer import PerformanceIndexer
from .scheduler import run_forever
from .search import SearchFilters, search_unified
from .store import PerformanceStore
from .tools import format_results


def _store(settings: Settings) -> PerformanceStore:
    store = PerformanceStore(settings.database_url)
    store.create_all()
    return store


def cmd_collect(args, settings):
    report = build_collector(settings, _store(settings)).collect_all()
    print(
        f"new={report.created} updated={report.updated} unchanged={report.unchanged} "
        f"skipped={report.skipped} failed={report.failed}"
    )
    for name, cat in report.categories.items():
        state = "aborted" if cat.aborted else "finished"
        print(f"  {name}: {state} after {cat.pages} page(s)" + (f" ({cat.error})" if cat.error else ""))


def cmd_sample(args, settings):
    count = build_collector(settings, _store(settings)).collect_sample(args.limit)
    print(f"Collected {count} performances")


def cmd_search(args, settings):
    filters = SearchFilters(
        date=args.date,
        day=args.day,
        place=args.region,
        genre=args.genre,
        status=args.status,
        price=args.price,
        query=args.vibe,
    )
    results = search_unified(_store(settings), filters, limit=args.k)
    print(format_results(results)["content"][0]["text"])


def cmd_index(args, settings):
    docs = [p.to_dict() for p in _store(settings).all()]
    if not docs:
        print("No stored performances to index")
        return
    idx = PerformanceIndexer()
    idx.fit(docs)
    idx.save(args.out)
    print(f"Indexed {len(docs)} performances to {args.out}")


def cmd_serve(args, settings):
    from .api import create_app

    app = create_app(settings)
    app.run(host=args.host, port=args.port, debug=False)


def cmd_schedule(args, settings):
    collector = build_collector(settings, _store(settings))
    run_forever(collector, cron=args.cron or settings.schedule)


def main(argv=None):
    parser = argparse.ArgumentParser("curtaincall")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="cmd")

    p_collect = sub.add_parser("collect", help="Run the full collection once")
    p_collect.set_defaults(func=cmd_collect)

    p_sample = sub.add_parser("sample", help="Collect one page per category")
    p_sample.add_argument("--limit", type=int, default=10, help="Total items across categories")
    p_sample.set_defaults(func=cmd_sample)

    p_search = sub.add_parser("search", help="Search stored performances")
    p_search.add_argument("--date", help="Date inside the run (YYYY-MM-DD)")
    p_search.add_argument("--day", help="Day of week, 주말 or 평일")
    p_search.add_argument("--region", help="Venue name substring")
    p_search.add_argument("--genre", help="Genre substring")
    p_search.add_argument("--status", help="공연중 or 공연예정")
    p_search.add_argument("--price", help="Price text substring")
    p_search.add_argument("--vibe", help="Free-text mood/content query")
    p_search.add_argument("-k", type=int, default=6, help="Number of results")
    p_search.set_defaults(func=cmd_search)

    p_index = sub.add_parser("index", help="Build a similarity index of stored performances")
    p_index.add_argument("--out", default="data/index.pkl", help="Output path")
    p_index.set_defaults(func=cmd_index)

    p_serve = sub.add_parser("serve", help="Run the operator HTTP API")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=5000)
    p_serve.set_defaults(func=cmd_serve)

    p_schedule = sub.add_parser("schedule", help="Run the collection on a cron schedule")
    p_schedule.add_argument("--cron", help="Cron expression (default from settings)")
    p_schedule.set_defaults(func=cmd_schedule)

    args = parser.parse_args(argv)
    if not hasattr(args, "func") or args.func is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args, Settings.from_env())
    return 0


if __name__ == "__main__":
    sys.exit(main())
