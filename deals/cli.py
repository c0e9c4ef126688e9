"""Command-line interface for the deals catalog."""

import argparse
import json
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import List, Optional

# Add parent directory to path to allow imports when run as script
sys.path.insert(0, str(Path(__file__).parent.parent))

__all__ = ["main", "parse_args", "show_stats"]

from deals.blog import build_post, publish_post
from deals.config import DB_PATH, STORE_URL
from deals.csv_utils import export_products_to_csv
from deals.importer import CsvImporter
from deals.logging_config import setup_logging
from deals.redirect import build_redirect_plan
from deals.store import DealStore, StoreError, create_store
from deals.url_validation import URLValidationError, clean_deal_url


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Robot vacuum deals: CSV import, blog posts and affiliate links",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import a product CSV into the local database
  python -m deals.cli --import-csv data/vacuums.csv

  # Convert an HTML article and publish it as a blog post
  python -m deals.cli --import-html posts/best-vacuums.html --publish

  # Export the catalog in upload format
  python -m deals.cli --export-csv data/export.csv

  # Show database statistics
  python -m deals.cli --stats

  # Clean a deal URL / see where a mobile click would go
  python -m deals.cli --clean-url "https://www.amazon.com/Roborock-Q7/dp/B0BXYZ1234/ref=sr_1?tag=other-20"
  python -m deals.cli --resolve-link "https://amazon.com/dp/B0BXYZ1234" --user-agent "iPhone"

Set DEALS_STORE_URL and DEALS_STORE_KEY to use the hosted store instead of SQLite.
        """,
    )

    # Database options
    parser.add_argument(
        "--db",
        default=DB_PATH,
        help=f"SQLite database path (default: {DB_PATH})",
    )

    # Imports
    parser.add_argument(
        "--import-csv",
        metavar="PATH",
        help="Validate a product CSV and upload new products",
    )
    parser.add_argument(
        "--import-html",
        metavar="PATH",
        help="Convert an HTML document to a Markdown blog post",
    )
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Store the converted post (use with --import-html)",
    )

    # Export options
    parser.add_argument(
        "--export-csv",
        metavar="PATH",
        help="Export all products to CSV in upload format",
    )

    # Info commands
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show database statistics and exit",
    )
    parser.add_argument(
        "--check-connection",
        action="store_true",
        help="Check that the data store is reachable",
    )

    # Link tools
    parser.add_argument(
        "--clean-url",
        metavar="URL",
        help="Print the canonical affiliate URL for a deal link",
    )
    parser.add_argument(
        "--resolve-link",
        metavar="URL",
        help="Print the redirect plan for a deal link",
    )
    parser.add_argument(
        "--user-agent",
        default="",
        help="User agent for --resolve-link (default: desktop)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging",
    )

    return parser.parse_args(argv)


def show_stats(store: DealStore, db_path: str) -> None:
    """Display catalog statistics."""
    products = store.list_products()
    posts = store.list_posts()

    print(f"\n{'='*50}")
    print(f"Store: {STORE_URL or db_path}")
    print(f"{'='*50}")

    print(f"\nTotal products: {len(products)}")
    print(f"Blog posts: {len(posts)}")

    brands = Counter(str(p.get("brand", "")).upper() for p in products)
    if brands:
        print("\nProducts by brand:")
        for brand, count in brands.most_common():
            print(f"  {brand}: {count}")

    if products:
        print("\nLatest products:")
        for product in products[:5]:
            print(f"  {product['model_number']}: {product['title']}"
                  f" - ${product['price']}"
                  f" (added {product.get('created_at') or '?'})")

    print()


def _import_csv(store: DealStore, path: str) -> int:
    report = CsvImporter(store).import_file(path)
    stats = report.stats

    print(f"\n{'='*50}")
    print(f"CSV import: {path}")
    print(f"{'='*50}")
    print(f"Total rows:  {stats.total_rows}")
    print(f"Candidates:  {stats.candidates}")
    print(f"Uploaded:    {stats.valid_rows}")
    print(f"Duplicates:  {stats.duplicates}")
    print(f"Errors:      {stats.errors}")

    if report.errors:
        print("\nErrors:")
        for error in report.errors:
            print(f"  {error}")

    print(f"\n{report.message}")
    return 0 if report.success else 1


def _import_html(store: DealStore, path: str, publish: bool) -> int:
    try:
        html = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error reading file: {e}")
        return 1

    post = build_post(html)
    print(f"Title:   {post.title}")
    print(f"Slug:    {post.slug}")
    print(f"Date:    {post.date}")
    print(f"Excerpt: {post.excerpt}")

    if not publish:
        print(f"\n{post.content}")
        return 0

    try:
        stored = publish_post(store, post)
    except (ValueError, StoreError) as e:
        print(f"Failed to publish blog post: {e}")
        return 1
    print(f"\nPublished at /blog/{stored.slug}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    # Link tools need no store
    if args.clean_url:
        try:
            print(clean_deal_url(args.clean_url))
        except URLValidationError as e:
            print(str(e))
            return 1
        return 0

    if args.resolve_link:
        plan = build_redirect_plan(args.resolve_link, args.user_agent)
        print(json.dumps(plan.to_dict(), indent=2))
        return 0

    store = create_store(db_path=args.db)

    if args.check_connection:
        ok = store.check_connection()
        print("Connection OK" if ok else "Connection failed")
        return 0 if ok else 1

    if args.stats:
        show_stats(store, args.db)
        return 0

    if args.export_csv:
        export_products_to_csv(store, args.export_csv)
        return 0

    if args.import_csv:
        return _import_csv(store, args.import_csv)

    if args.import_html:
        return _import_html(store, args.import_html, args.publish)

    print("Nothing to do. Run with --help for usage.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
