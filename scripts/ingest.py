import argparse
import json

from zyloestates.config import get_settings
from zyloestates.etl import ListingsImporter
from zyloestates.log import configure_logging
from zyloestates.store import Store


def main():
    parser = argparse.ArgumentParser(description="Import the MoneyTree Realty listings feed into the catalog")
    parser.add_argument("--database-url", help="SQLAlchemy URL (defaults to DATABASE_URL)")
    parser.add_argument("--feed-url", help="Listings feed URL (defaults to LISTINGS_FEED_URL)")
    parser.add_argument("--limit", type=int, help="Import at most N listings; 0 for the whole feed")
    parser.add_argument("--seed", type=int, help="Seed for placeholder builder values")
    parser.add_argument("--preview", action="store_true", help="Print mapped projects without writing them")
    args = parser.parse_args()

    settings = get_settings()
    overrides = {"listings_feed_url": args.feed_url, "listings_import_limit": args.limit, "placeholder_seed": args.seed}
    settings = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})
    configure_logging(settings.log_level, settings.log_json)

    with Store(args.database_url or settings.database_url) as store:
        importer = ListingsImporter(store, settings)
        res = importer.preview() if args.preview else importer.run()
    print(json.dumps(res, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
