"""Index the remote store into the catalog and open sessions for several accounts."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlmodel import Session

from takeout_sync.errors import AuthenticationError
from takeout_sync.models.photo import RemotePhoto, utc_now
from takeout_sync.remote.synology import RemoteItem, SynologyPhotosClient
from takeout_sync.services.catalog import upsert_remote_photo
from takeout_sync.utils.hashing import compute_metadata_fingerprint
from takeout_sync.utils.pacing import FixedDelay, Pacer

logger = logging.getLogger(__name__)

AUTH_POOL_SIZE = 3
SHARED_ACCOUNT = "_shared"


@dataclass
class IndexResult:
    account: str
    personal: int = 0
    shared: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.personal + self.shared


def to_remote_photo(item: RemoteItem, account_name: str, space: str = "personal") -> RemotePhoto:
    owner = SHARED_ACCOUNT if space == "shared" else account_name
    return RemotePhoto(
        id=RemotePhoto.make_id(account_name, item.id, space),
        account_name=owner,
        filename=item.filename,
        creation_time=item.creation_time,
        file_size=item.filesize,
        content_hash=compute_metadata_fingerprint(
            item.filename, item.filesize, item.time, item.width, item.height
        ),
        remote_item_id=item.id,
        width=item.width,
        height=item.height,
        last_scanned_at=utc_now(),
    )


def index_remote_store(
    client: SynologyPhotosClient,
    session: Session,
    include_shared: bool = True,
    pacer: Optional[Pacer] = None,
) -> IndexResult:
    """Record every photo of the account's personal space (and the shared space)."""
    pacer = pacer or FixedDelay(0)
    result = IndexResult(account=client.account_name)
    spaces = ["personal", "shared"] if include_shared else ["personal"]

    for space in spaces:
        logger.info("Indexing %s space for %s", space, client.account_name)
        for page in client.iter_space_items(space):
            for item in page:
                upsert_remote_photo(to_remote_photo(item, client.account_name, space), session, commit=False)
            session.commit()
            if space == "shared":
                result.shared += len(page)
            else:
                result.personal += len(page)
            pacer.wait()

    logger.info(
        "Indexed %d personal and %d shared photos for %s",
        result.personal, result.shared, client.account_name,
    )
    return result


def authenticate_all(clients: Sequence[SynologyPhotosClient]) -> list[SynologyPhotosClient]:
    """Open every client on a small pool. Accounts that fail to log in are left out."""
    if not clients:
        return []

    def _open(client: SynologyPhotosClient) -> Optional[SynologyPhotosClient]:
        try:
            return client.open()
        except AuthenticationError as e:
            logger.error("Skipping account %s: %s", client.account_name, e)
            return None

    with ThreadPoolExecutor(max_workers=min(AUTH_POOL_SIZE, len(clients))) as pool:
        opened = list(pool.map(_open, clients))
    return [c for c in opened if c is not None]
