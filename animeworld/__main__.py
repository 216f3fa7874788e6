"""
AnimeWorld Command Line
=======================
python -m animeworld <command>

Commands:
    serve      Run the HTTP API with uvicorn
    trending   Show trending anime or manga
    search     Search the catalog
    show       Show details for one media id
    schedule   Show the airing schedule
    analyze    Identify the anime / manga an image comes from
    health     Check the user store (and optionally a running API)
"""

import argparse
import logging
import mimetypes
import sys
from pathlib import Path

from animeworld.adapters.anilist_adapter import AniListAdapter
from animeworld.adapters.recognition import RecognitionClient
from animeworld.adapters.user_api_client import UserApiClient
from animeworld.config.settings import (
    API_BASE_URL,
    API_HOST,
    PORT,
    RECOGNITION_MAX_BYTES,
    SCHEDULE_DAYS_AHEAD,
    SEARCH_PAGE_SIZE,
    TRENDING_WINDOW_SIZE,
    USER_DB_PATH,
    ensure_directories,
    setup_logging,
)
from animeworld.database.db_connector import UserStore
from animeworld.exceptions import AnimeWorldError, FetchError
from animeworld.models import ImageUpload, MediaType
from animeworld.transform.demo_data import fallback_schedule

logger = logging.getLogger(__name__)


def print_media_line(media):
    rank = f"#{media.rank:<3}" if media.rank else "    "
    fallback = " (offline)" if media.from_fallback else ""
    print(f"{rank} [{media.id}] {media.titles.preferred} - {media.comic_kind}, "
          f"{media.length_label}, rating {media.rating}{fallback}")


# ==============================================================================
# COMMANDS
# ==============================================================================

def cmd_serve(args):
    import uvicorn

    ensure_directories()
    uvicorn.run("animeworld.api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def cmd_trending(args):
    catalog = AniListAdapter()
    for media in catalog.fetch_trending(args.kind, args.limit):
        print_media_line(media)
    catalog.log_request_stats()
    return 0


def cmd_search(args):
    catalog = AniListAdapter()
    page = catalog.search(args.term, page=args.page, page_size=args.per_page, kind=args.kind)
    print(f"{page.page_info.total} results for '{page.term}' "
          f"(page {page.page_info.current_page}/{page.page_info.last_page})")
    for media in page.results:
        print_media_line(media)
    return 0


def cmd_show(args):
    catalog = AniListAdapter()
    detail = catalog.fetch_by_id(args.media_id)
    if detail is None:
        print(f"Media {args.media_id} not found")
        return 1

    print("=" * 60)
    print(detail.titles.preferred)
    print("=" * 60)
    print(f"Type:     {detail.comic_kind} ({detail.format}, {detail.status.value})")
    print(f"Length:   {detail.length_label}")
    print(f"Score:    {detail.average_score}/100")
    print(f"Aired:    {detail.start_date} - {detail.end_date}")
    print(f"Studio:   {detail.main_studio}")
    print(f"Genres:   {', '.join(detail.genres) or '-'}")
    print()
    print(detail.description)
    return 0


def cmd_schedule(args):
    catalog = AniListAdapter()
    try:
        schedule = catalog.fetch_schedule(days_ahead=args.days)
    except FetchError as e:
        logger.warning(f"Schedule unavailable ({e}); showing simulated schedule")
        schedule = fallback_schedule(days_ahead=args.days)

    if schedule.simulated:
        print("[SIMULATED] AniList unreachable, showing sample data")
    for day in schedule.days:
        print(f"\n{day.label} ({day.day_of_week}){' - today' if day.is_today else ''}")
        if not day.items:
            print("  no episodes")
        for entry in day.items:
            print(f"  {entry.time}  {entry.media.titles.preferred} - episode {entry.episode}")
    return 0


def cmd_analyze(args):
    path = Path(args.image)
    content_type = mimetypes.guess_type(path.name)[0] or ""
    with open(path, "rb") as f:
        data = f.read(RECOGNITION_MAX_BYTES + 1)

    client = RecognitionClient()
    result = client.analyze(ImageUpload(filename=path.name, content_type=content_type, data=data))

    if result.simulated:
        print("[SIMULATED] No SauceNAO API key configured; this is a demo result")
    status = "MATCH" if result.matched else "NO MATCH"
    print(f"[{status}] {result.title or '-'} ({result.media_kind.value}), "
          f"confidence {result.confidence:.0f}% via {result.source_api}")
    print(result.description)
    if result.matched and args.resolve:
        print(f"Media id: {client.resolve_media_id(result)}")
    return 0 if result.matched else 1


def cmd_health(args):
    print("=" * 60)
    print("ANIMEWORLD - HEALTH CHECK")
    print("=" * 60)

    healthy = True
    store = UserStore(args.db_path)
    if store.ping():
        print(f"[OK] User store accessible ({store.database_name}, {len(store.list_users())} users)")
    else:
        print(f"[FAIL] User store not accessible: {args.db_path}")
        healthy = False
    store.close()

    if args.api:
        try:
            status = UserApiClient(args.api).health()
            print(f"[OK] API at {args.api}: {status.get('status')} (database {status.get('database')})")
        except FetchError as e:
            print(f"[FAIL] API at {args.api} not reachable: {e}")
            healthy = False

    print("=" * 60)
    print("HEALTHY" if healthy else "UNHEALTHY")
    return 0 if healthy else 1


# ==============================================================================
# MAIN EXECUTION
# ==============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='animeworld',
        description='Anime and manga discovery tools'
    )
    parser.add_argument(
        '--log-level',
        default=None,
        help='Log level (default: LOG_LEVEL setting)'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    serve = subparsers.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('--host', default=API_HOST, help=f'Bind address (default: {API_HOST})')
    serve.add_argument('--port', type=int, default=PORT, help=f'Port (default: {PORT})')
    serve.add_argument('--reload', action='store_true', help='Reload on code changes')
    serve.set_defaults(func=cmd_serve)

    trending = subparsers.add_parser('trending', help='Show trending titles')
    trending.add_argument('--kind', type=MediaType, choices=list(MediaType), default=MediaType.ANIME)
    trending.add_argument('--limit', type=int, default=TRENDING_WINDOW_SIZE)
    trending.set_defaults(func=cmd_trending)

    search = subparsers.add_parser('search', help='Search the catalog')
    search.add_argument('term')
    search.add_argument('--page', type=int, default=1)
    search.add_argument('--per-page', type=int, default=SEARCH_PAGE_SIZE)
    search.add_argument('--kind', type=MediaType, choices=list(MediaType), default=None)
    search.set_defaults(func=cmd_search)

    show = subparsers.add_parser('show', help='Show details for one media id')
    show.add_argument('media_id', type=int)
    show.set_defaults(func=cmd_show)

    schedule = subparsers.add_parser('schedule', help='Show the airing schedule')
    schedule.add_argument('--days', type=int, default=SCHEDULE_DAYS_AHEAD)
    schedule.set_defaults(func=cmd_schedule)

    analyze = subparsers.add_parser('analyze', help='Identify an image')
    analyze.add_argument('image', help='Path to a JPEG, PNG, WebP or GIF image')
    analyze.add_argument('--resolve', action='store_true', help='Look up the catalog id by title if needed')
    analyze.set_defaults(func=cmd_analyze)

    health = subparsers.add_parser('health', help='Run health checks')
    health.add_argument('--db-path', default=USER_DB_PATH, help=f'User database (default: {USER_DB_PATH})')
    health.add_argument('--api', nargs='?', const=API_BASE_URL, default=None,
                        help=f'Also check a running API (default URL: {API_BASE_URL})')
    health.set_defaults(func=cmd_health)

    return parser


def main(argv=None):
    """Main execution function"""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        return args.func(args)
    except AnimeWorldError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
