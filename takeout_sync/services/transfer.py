"""Upload pending archive photos to the paired remote account."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from sqlmodel import Session

from takeout_sync.config import RemoteAccount, settings
from takeout_sync.errors import NotAuthenticatedError, RemoteApiError
from takeout_sync.models.photo import ArchivePhoto
from takeout_sync.remote.synology import SynologyPhotosClient
from takeout_sync.services.catalog import mark_backed_up, photos_not_backed_up
from takeout_sync.utils.pacing import FixedDelay, Pacer
from takeout_sync.utils.paths import destination_folder
from takeout_sync.utils.tagger import TagWriter

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    synced: int = 0
    failed: int = 0
    skipped: int = 0
    tagged: int = 0


class TransferOrchestrator:
    """Moves each pending photo to the remote store exactly once.

    A photo is marked backed up only after the remote store confirmed its
    upload; a failed item stays pending for the next run.
    """

    def __init__(
        self,
        session: Session,
        remote_account: RemoteAccount,
        client: Optional[SynologyPhotosClient] = None,
        pacer: Optional[Pacer] = None,
        tagger: Optional[TagWriter] = None,
    ):
        self.session = session
        self.remote_account = remote_account
        self.client = client
        self.pacer = pacer or FixedDelay(settings.upload_delay)
        self.tagger = tagger

    def run(
        self,
        account_name: str,
        limit: Optional[int] = None,
        dry_run: bool = False,
        organize_by_album: bool = False,
        tag_with_album: bool = True,
    ) -> SyncResult:
        if not dry_run and self.client is None:
            raise NotAuthenticatedError("A connected remote client is required outside dry run.")

        tagger = self.tagger or TagWriter(dry_run=dry_run)
        result = SyncResult()
        backlog = photos_not_backed_up(account_name, self.session, limit=limit)
        logger.info(
            "Transferring %d photos for %s to %s%s",
            len(backlog), account_name, self.remote_account.name, " (dry run)" if dry_run else "",
        )

        for i, photo in enumerate(backlog):
            if i:
                self.pacer.wait()
            self._transfer_one(photo, result, dry_run, organize_by_album, tag_with_album, tagger)

        logger.info(
            "Transfer complete for %s: %d synced, %d failed, %d skipped, %d tagged",
            account_name, result.synced, result.failed, result.skipped, result.tagged,
        )
        return result

    def _transfer_one(
        self,
        photo: ArchivePhoto,
        result: SyncResult,
        dry_run: bool,
        organize_by_album: bool,
        tag_with_album: bool,
        tagger: TagWriter,
    ) -> None:
        source = Path(photo.source_path)
        if not source.is_file():
            logger.warning("Source file missing, skipping: %s", source)
            result.skipped += 1
            return

        folder = destination_folder(self.remote_account.photo_library_path, photo.album_name, organize_by_album)

        if dry_run:
            logger.info("[DRY RUN] Would upload %s to %s", photo.filename, folder)
            result.synced += 1
            if tag_with_album and photo.album_name and tagger.write_album_tag(source, photo.album_name).success:
                result.tagged += 1
            return

        try:
            data = source.read_bytes()
            self.client.upload(data, photo.filename, folder)
        except (OSError, RemoteApiError) as e:
            logger.error("Failed to upload %s: %s", photo.filename, e)
            result.failed += 1
            return

        mark_backed_up(photo.id, self.session, remote_path=folder)
        result.synced += 1

        if tag_with_album and photo.album_name:
            tag = tagger.write_album_tag(source, photo.album_name)
            if tag.success:
                result.tagged += 1
            elif not tag.unsupported:
                logger.warning("Could not tag %s with album %r: %s", photo.filename, photo.album_name, tag.error)


def sync_to_remote(
    account_name: str,
    session: Session,
    limit: Optional[int] = None,
    dry_run: bool = False,
    organize_by_album: bool = False,
    tag_with_album: bool = True,
    client_factory: Callable[[RemoteAccount], SynologyPhotosClient] = SynologyPhotosClient,
    pacer: Optional[Pacer] = None,
) -> SyncResult:
    """Resolve the paired account, open a session unless dry-running, and transfer."""
    remote_account = settings.get_paired_account(account_name)

    if dry_run:
        return TransferOrchestrator(session, remote_account, pacer=pacer).run(
            account_name, limit=limit, dry_run=True,
            organize_by_album=organize_by_album, tag_with_album=tag_with_album,
        )

    with client_factory(remote_account) as client:
        return TransferOrchestrator(session, remote_account, client=client, pacer=pacer).run(
            account_name, limit=limit, dry_run=False,
            organize_by_album=organize_by_album, tag_with_album=tag_with_album,
        )
