"""takeout-sync command line."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

from sqlmodel import Session

from takeout_sync import __version__
from takeout_sync.archive.scanner import ArchiveItem
from takeout_sync.config import RemoteAccount, settings
from takeout_sync.database import engine, init_db
from takeout_sync.errors import ArchiveNotFoundError, ConfigurationError, RemoteApiError
from takeout_sync.logging_config import configure_logging
from takeout_sync.remote.synology import StorageInfo, SynologyPhotosClient
from takeout_sync.services import analysis_service, report_service
from takeout_sync.services.catalog import album_counts, photo_stats
from takeout_sync.services.import_service import import_archive
from takeout_sync.services.reconciler import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_LOOKUP_CONCURRENCY,
    AlbumReconciler,
    album_status,
)
from takeout_sync.services.remote_index import authenticate_all, index_remote_store
from takeout_sync.services.retag_service import retag_archive
from takeout_sync.services.transfer import sync_to_remote
from takeout_sync.utils.pacing import FixedDelay

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 100


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f'invalid value "{value}": must be a positive number')
    if number <= 0:
        raise argparse.ArgumentTypeError(f'invalid value "{value}": must be a positive number')
    return number


def format_bytes(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024:
            return f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} TB"


def progress_bar(percent: float, width: int = 30) -> str:
    filled = round(width * min(max(percent, 0.0), 100.0) / 100)
    return "[" + "#" * filled + "-" * (width - filled) + "]"


def scan_progress() -> Callable[[ArchiveItem], None]:
    """Callback that prints a running count of scanned files."""
    seen = 0

    def _on_item(item: ArchiveItem) -> None:
        nonlocal seen
        seen += 1
        if seen % PROGRESS_EVERY == 0:
            print(f"\rScanned {seen} files...", end="", flush=True)

    return _on_item


def resolve_pairings(accounts: list[str]) -> dict[str, RemoteAccount]:
    """Pair every archive account up front so a bad pairing stops the command before any work."""
    if not accounts:
        raise ConfigurationError("No accounts configured. Set TAKEOUT_SYNC_USERNAME or TAKEOUT_SYNC_REMOTE_ACCOUNTS.")
    return {account: settings.get_paired_account(account) for account in accounts}


def storage_by_account() -> dict[str, StorageInfo]:
    """Volume usage seen by each remote account that logs in."""
    clients = authenticate_all([SynologyPhotosClient(a) for a in settings.accounts()])
    storage: dict[str, StorageInfo] = {}
    try:
        for client in clients:
            try:
                storage[client.account_name] = client.get_storage_info()
            except RemoteApiError as e:
                logger.error("Failed to get storage info for %s: %s", client.account_name, e)
    finally:
        for client in clients:
            client.close()
    return storage


# --- Commands ---

def cmd_scan(args, session: Session) -> int:
    """Index every configured remote account."""
    accounts = settings.accounts()
    if not accounts:
        raise ConfigurationError("No remote accounts configured. Set TAKEOUT_SYNC_USERNAME or TAKEOUT_SYNC_REMOTE_ACCOUNTS.")

    clients = authenticate_all([SynologyPhotosClient(a) for a in accounts])
    pacer = FixedDelay(settings.scan_page_delay)
    shared_indexed = False
    failed = 0
    try:
        for client in clients:
            try:
                result = index_remote_store(client, session, include_shared=not shared_indexed, pacer=pacer)
            except RemoteApiError as e:
                session.rollback()
                logger.error("Indexing failed for %s: %s", client.account_name, e)
                failed += 1
                continue
            shared_indexed = True
            print(f"  {result.account}: {result.personal} personal, {result.shared} shared photos indexed")
    finally:
        for client in clients:
            client.close()
    if len(clients) < len(accounts):
        print(f"  {len(accounts) - len(clients)} account(s) skipped: authentication failed")
    if failed:
        print(f"  {failed} account(s) skipped: indexing failed")
    return 0


def cmd_import(args, session: Session) -> int:
    if args.zip:
        dest = settings.data_dir / "extracted" / Path(args.path).stem
        result = import_archive(dest, args.account, session, zip_path=args.path, on_item=scan_progress())
    else:
        result = import_archive(args.path, args.account, session, on_item=scan_progress())

    print("\n========== IMPORT RESULTS ==========")
    print(f"  Account: {result.account}")
    print(f"  Total scanned: {result.total_scanned}")
    print(f"  New photos: {result.new_photos}")
    print(f"  Already imported: {result.already_imported}")
    print(f"  Already on remote: {result.duplicates_in_remote}")
    print(f"  Repeated in export: {result.duplicates_in_batch}")
    print(f"  Albums found: {len(result.albums_found)}")
    if result.errors:
        print(f"  Errors: {len(result.errors)}")
        for error in result.errors[:10]:
            print(f"    {error}")
    return 0


def cmd_sync(args, session: Session) -> int:
    accounts = [args.account] if args.account else settings.archive_accounts()
    resolve_pairings(accounts)
    dry_run = args.dry_run or settings.dry_run
    prefix = "[DRY RUN] " if dry_run else ""

    status = 0
    for account in accounts:
        try:
            result = sync_to_remote(
                account,
                session,
                limit=args.limit,
                dry_run=dry_run,
                organize_by_album=args.organize_by_album,
                tag_with_album=args.tag_with_album,
                client_factory=SynologyPhotosClient,
            )
        except RemoteApiError as e:
            logger.error("Skipping sync for %s: %s", account, e)
            status = 1
            continue
        print(f"\n{prefix}Sync for {account}: {result.synced} synced, {result.failed} failed, "
              f"{result.skipped} skipped, {result.tagged} tagged")
        if result.failed:
            status = 1
    return status


def _print_album_status(account: str, status: dict[str, int]) -> None:
    print(f"\n========== Album Sync Status for {account} ==========\n")
    print(f"  Photos with album assignments: {status['total_with_albums']}")
    print(f"  Already in remote albums: {status['synced_to_albums']}")
    print(f"  Needing album assignment: {status['needing_sync']}")
    print(f"  Needing remote photo ID: {status['needing_photo_id']}")


def cmd_fix_albums(args, session: Session) -> int:
    accounts = [args.account] if args.account else settings.archive_accounts()
    dry_run = args.dry_run or settings.dry_run
    remote_accounts = {} if dry_run else resolve_pairings(accounts)

    for account in accounts:
        status = album_status(account, session)
        _print_album_status(account, status)
        if status["needing_sync"] == 0 and status["needing_photo_id"] == 0:
            print("\n  All photos are already in their albums!")
            continue

        run_kwargs = dict(
            limit=args.limit, batch_size=args.batch_size, concurrency=args.concurrency, dry_run=dry_run,
        )
        if dry_run:
            result = AlbumReconciler(session).run(account, **run_kwargs)
        else:
            try:
                with SynologyPhotosClient(remote_accounts[account]) as client:
                    result = AlbumReconciler(session, client=client).run(account, **run_kwargs)
            except RemoteApiError as e:
                logger.error("Skipping album fix for %s: %s", account, e)
                continue

        print(f"\n{'[DRY RUN] ' if dry_run else ''}========== FIX ALBUMS RESULTS ==========")
        print(f"  Photos processed: {result.processed}")
        print(f"  Photo IDs found: {result.photo_ids_found}")
        print(f"  Albums created: {result.albums_created}")
        print(f"  Added to albums: {result.added_to_albums}")
        print(f"  Skipped: {result.skipped}")
        print(f"  Errors: {result.errors}")
    return 0


def cmd_albums(args, session: Session) -> int:
    counts = album_counts(session, account_name=args.account)
    if not counts:
        print("\nNo albums found. Run \"import\" first.")
        return 0
    print(f"\n========== ALBUMS ({len(counts)}) ==========\n")
    for name, count in list(counts.items())[:args.limit]:
        print(f"  {name}: {count} photos")
    return 0


def cmd_export(args, session: Session) -> int:
    photos = report_service.deletion_candidates(session, account_name=args.account)
    if not photos:
        print("\nNo backed-up photos found to export.")
        print("Run \"import\" and \"sync\" first to back up photos.")
        return 0

    if args.format == "dates":
        summary = report_service.date_summary(photos)
        print("\n========== BACKED-UP PHOTOS DATE RANGE ==========\n")
        print(f"  Total photos backed up: {summary['total']}")
        print(f"  Oldest: {summary['oldest']}")
        print(f"  Newest: {summary['newest']}")
        print("\n  By Month:")
        for month, count in summary["by_month"].items():
            print(f"    {month}: {count} photos")
    elif args.format == "json":
        output = report_service.write_json(photos, args.output)
        print(f"\nExported {len(photos)} photos to {output}")
    else:
        output = report_service.write_csv(photos, args.output)
        print(f"\nExported {len(photos)} photos to {output}")
    return 0


def _print_brief(rows) -> None:
    for row in rows:
        print(f"  {row['filename']} | {row['date']} | {row['size'] or '?'} bytes")


def cmd_inspect(args, session: Session) -> int:
    if args.search:
        found = report_service.search_filename(session, args.search, limit=args.count)
        print(f"\n========== SEARCH: \"{args.search}\" ==========\n")
        print(f"Remote matches ({len(found['remote'])}):")
        _print_brief(found["remote"])
        print(f"\nArchive matches ({len(found['archive'])}):")
        _print_brief(found["archive"])
        if found["remote"] and found["archive"]:
            print("\nFound in BOTH: check whether the days match (comparison uses the UTC day only)")
    elif args.matched:
        matches = report_service.inspect_matched(session, limit=args.count)
        print(f"\nFound {len(matches)} photos with the same filename in both:\n")
        for m in matches:
            print(f"  {m['filename']}")
            print(f"    Archive: {m['archive_date']} | {m['archive_size'] or '?'} bytes")
            print(f"    Remote:  {m['remote_date']} | {m['remote_size'] or '?'} bytes")
            print(f"    Date match: {'yes' if m['date_match'] else 'no'}\n")
    elif args.remote:
        print("\n========== REMOTE PHOTOS (sample) ==========\n")
        _print_brief(report_service.inspect_remote(session, limit=args.count))
    else:
        rows = report_service.inspect_new(session, limit=args.count)
        print("\n========== NEW PHOTOS (not on remote) ==========\n")
        print(f"Showing {len(rows)} oldest new photos:\n")
        _print_brief(rows)
    return 0


def cmd_status(args, session: Session) -> int:
    print("\n========== STATUS ==========\n")
    if args.storage:
        storage = storage_by_account()
        if storage:
            print("--- NAS STORAGE ---")
            for name, info in storage.items():
                print(f"{name}:")
                print(f"  {progress_bar(info.percent_used)} {info.percent_used:.1f}%")
                print(f"  {format_bytes(info.used)} / {format_bytes(info.total)}\n")

    stats = photo_stats(session)
    print("--- CATALOG ---")
    print(f"  Archive photos: {stats['total_archive']}")
    print(f"  Remote photos indexed: {stats['total_remote']}")
    print(f"  Backed up: {stats['backed_up']}")
    print(f"  Pending transfer: {stats['pending']}")
    print(f"  Safe to remove from source: {stats['can_be_removed']}")
    print(f"  Albums: {stats['albums']} ({stats['album_items']} memberships)")
    return 0


def _pair_line(pair: dict) -> str:
    a, r = pair["archive"], pair["remote"]
    return f"{a['filename']} (archive:{a['account']}) <-> {r['filename']} (remote:{r['account']}) [{pair['match_type']}]"


def cmd_analyze(args, session: Session) -> int:
    storage = storage_by_account() if args.storage else None
    report = analysis_service.generate_report(session, storage=storage)

    print("\n========== PHOTO ANALYSIS REPORT ==========\n")
    print(f"Generated: {report.timestamp}\n")

    print("--- TAKEOUT IMPORTS ---")
    for account in report.archive_accounts:
        print(f"\n{account.name}:")
        print(f"  Total photos imported: {account.total_photos}")
        print(f"  Backed up to NAS: {account.backed_up}")
        print(f"  Not yet synced: {account.not_backed_up}")
        print(f"  Syncs to: {account.paired_with or '(not paired)'}")

    print("\n--- NAS ACCOUNTS ---")
    for account in report.remote_accounts:
        print(f"\n{account.name}:")
        print(f"  Total photos: {account.total_photos}")
        if account.storage_total > 0:
            print(f"  Storage: {format_bytes(account.storage_used)} / {format_bytes(account.storage_total)} "
                  f"({account.percent_used:.1f}%)")

    print("\n--- DUPLICATES ---")
    print(f"  Found: {len(report.duplicates)}")
    if len(report.duplicates) > 10:
        print("  (showing first 10)")
    for pair in report.duplicates[:10]:
        print(f"  - {_pair_line(pair)}")

    print("\n--- RECOMMENDATIONS ---")
    for advice in report.recommendations:
        print(f"  * {advice}")

    if args.output:
        output = analysis_service.write_report(report, args.output)
        print(f"\nReport saved to: {output}")
    return 0


def cmd_duplicates(args, session: Session) -> int:
    if args.removable:
        photos = analysis_service.removable_photos(session, account_name=args.account)
        print(f"\nFound {len(photos)} photos that can be safely removed from Google Photos:\n")
        for photo in photos[:args.count]:
            taken = photo.creation_time.isoformat() if photo.creation_time else "no date"
            print(f"  - {photo.filename} ({photo.account_name}) - {taken}")
        if len(photos) > args.count:
            print(f"  ... and {len(photos) - args.count} more")
        return 0

    pairs = analysis_service.find_duplicates(session, account_name=args.account)
    print(f"\nFound {len(pairs)} duplicate pairs:\n")
    for pair in pairs[:args.count]:
        print(f"  {pair.archive.filename} (archive:{pair.archive.account_name})")
        print(f"    <-> {pair.remote.filename} (remote:{pair.remote.account_name})")
        print(f"    Match type: {pair.match_type}\n")
    if len(pairs) > args.count:
        print(f"  ... and {len(pairs) - args.count} more pairs")
    return 0


def cmd_retag(args, session: Session) -> int:
    dry_run = args.dry_run or settings.dry_run
    result = retag_archive(args.path, limit=args.limit, dry_run=dry_run, on_item=scan_progress())
    if result.photos == 0:
        print("\nNo photos with album assignments found.")
        print("Albums are detected from the folder structure (e.g. \"Trip to Florida/photo.jpg\").")
        return 0

    print(f"\n{'[DRY RUN] ' if dry_run else ''}========== RETAG RESULTS ==========")
    print(f"  Photos in albums: {result.photos} ({result.albums} albums)")
    print(f"  Tagged: {result.tagged}")
    print(f"  Skipped (unsupported format): {result.skipped}")
    print(f"  Failed: {result.failed}")
    return 0 if result.failed == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="takeout-sync",
        description="Back up Google Takeout photo exports to Synology Photos",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="Index photos already on the remote store")
    scan_parser.set_defaults(func=cmd_scan)

    import_parser = subparsers.add_parser("import", help="Import a Takeout export into the catalog")
    import_parser.add_argument("path", type=Path, help="Extracted Takeout folder, or zip file with --zip")
    import_parser.add_argument("-a", "--account", default=settings.account, help="Archive account name")
    import_parser.add_argument("--zip", action="store_true", help="Path is a zip file; extract it first")
    import_parser.set_defaults(func=cmd_import)

    sync_parser = subparsers.add_parser("sync", help="Upload pending photos to the remote store")
    sync_parser.add_argument("-a", "--account", help="Archive account name")
    sync_parser.add_argument("-n", "--limit", type=positive_int, help="Upload at most N photos")
    sync_parser.add_argument("--dry-run", action="store_true", help="Preview without uploading")
    sync_parser.add_argument("--organize-by-album", action="store_true",
                             help="Upload into one folder per album")
    sync_parser.add_argument("--tag-with-album", action=argparse.BooleanOptionalAction, default=True,
                             help="Write the album name into the photo's keywords (default: on)")
    sync_parser.set_defaults(func=cmd_sync)

    fix_parser = subparsers.add_parser("fix-albums", help="Add uploaded photos to their remote albums")
    fix_parser.add_argument("-a", "--account", help="Archive account name")
    fix_parser.add_argument("-n", "--limit", type=positive_int, help="Process at most N photos per phase")
    fix_parser.add_argument("--batch-size", type=positive_int, default=DEFAULT_BATCH_SIZE,
                            help=f"Photos added per album call (default: {DEFAULT_BATCH_SIZE})")
    fix_parser.add_argument("--concurrency", type=positive_int, default=DEFAULT_LOOKUP_CONCURRENCY,
                            help=f"Parallel photo id lookups (default: {DEFAULT_LOOKUP_CONCURRENCY})")
    fix_parser.add_argument("--dry-run", action="store_true", help="Preview without changes")
    fix_parser.set_defaults(func=cmd_fix_albums)

    albums_parser = subparsers.add_parser("albums", help="List albums found in imports")
    albums_parser.add_argument("-a", "--account", help="Archive account name")
    albums_parser.add_argument("-n", "--limit", type=positive_int, default=50, help="Albums to show")
    albums_parser.set_defaults(func=cmd_albums)

    export_parser = subparsers.add_parser("export", help="Export backed-up photos safe to delete at the source")
    export_parser.add_argument("-a", "--account", help="Archive account name")
    export_parser.add_argument("-o", "--output", type=Path, default=Path("backed-up-photos.csv"))
    export_parser.add_argument("--format", choices=report_service.EXPORT_FORMATS, default="csv")
    export_parser.set_defaults(func=cmd_export)

    inspect_parser = subparsers.add_parser("inspect", help="Check how archive photos matched the remote store")
    which = inspect_parser.add_mutually_exclusive_group()
    which.add_argument("--new", action="store_true", help="Photos not on the remote store (default)")
    which.add_argument("--matched", action="store_true", help="Filenames present in both")
    which.add_argument("--remote", action="store_true", help="Sample of indexed remote photos")
    inspect_parser.add_argument("-n", "--count", type=positive_int, default=20, help="Rows to show")
    inspect_parser.add_argument("--search", help="Find a filename in both sources")
    inspect_parser.set_defaults(func=cmd_inspect)

    status_parser = subparsers.add_parser("status", help="Catalog totals")
    status_parser.add_argument("--storage", action="store_true", help="Also query NAS storage usage")
    status_parser.set_defaults(func=cmd_status)

    analyze_parser = subparsers.add_parser("analyze", help="Report totals, pairings, duplicates and next steps")
    analyze_parser.add_argument("-o", "--output", type=Path, help="Also write the report as JSON")
    analyze_parser.add_argument("--storage", action="store_true", help="Include NAS storage usage")
    analyze_parser.set_defaults(func=cmd_analyze)

    dup_parser = subparsers.add_parser("duplicates", help="List photos present in both the export and the NAS")
    dup_parser.add_argument("-a", "--account", help="Archive account name")
    dup_parser.add_argument("--removable", action="store_true", help="Only list export photos safe to remove")
    dup_parser.add_argument("-n", "--count", type=positive_int, default=20, help="Rows to show")
    dup_parser.set_defaults(func=cmd_duplicates)

    retag_parser = subparsers.add_parser("retag", help="Write album tags into an export's photos (no upload)")
    retag_parser.add_argument("path", type=Path, help="Extracted Takeout folder")
    retag_parser.add_argument("-n", "--limit", type=positive_int, help="Tag at most N photos")
    retag_parser.add_argument("--dry-run", action="store_true", help="Preview without writing")
    retag_parser.set_defaults(func=cmd_retag)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings.ensure_dirs()
    configure_logging("DEBUG" if args.verbose else settings.log_level, settings.log_dir)
    init_db()

    try:
        with Session(engine) as session:
            return args.func(args, session)
    except (ConfigurationError, ArchiveNotFoundError, RemoteApiError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
