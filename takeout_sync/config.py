"""Takeout Sync configuration."""

from pathlib import Path

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from takeout_sync.errors import ConfigurationError


class RemoteAccount(BaseModel):
    """Connection details for one Synology Photos account."""

    name: str
    host: str = "localhost"
    port: int = 5000
    username: str
    password: str = ""
    photo_library_path: str = "/photo"
    use_ssl: bool = False

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_ssl else "http"
        return f"{scheme}://{self.host}:{self.port}"


class Settings(BaseSettings):
    # Paths
    data_dir: Path = Path("data")
    db_path: Path = Path("data") / "photos.db"
    log_dir: Path = Path("logs")

    # Behaviour
    dry_run: bool = False
    log_level: str = "INFO"

    # Single-account shortcut (TAKEOUT_SYNC_USERNAME, TAKEOUT_SYNC_PASSWORD, ...)
    account: str = "account1"
    host: str = "localhost"
    port: int = 5000
    use_ssl: bool = False
    username: str = ""
    password: str = ""
    photo_path: str = "/photo"

    # Multi-account form, JSON encoded in the environment
    remote_accounts: list[RemoteAccount] = []
    pairings: dict[str, str] = {}  # archive account -> remote account

    # Pacing (seconds)
    upload_delay: float = 0.2
    lookup_delay: float = 0.1
    album_chunk_delay: float = 0.5
    scan_page_delay: float = 0.05

    # HTTP
    request_timeout: float = 30.0
    upload_timeout: float = 120.0

    model_config = SettingsConfigDict(
        env_prefix="TAKEOUT_SYNC_",
        env_file=".env",
        extra="ignore",
    )

    def ensure_dirs(self) -> None:
        """Create the data and log directories."""
        for d in [self.data_dir, self.db_path.parent, self.log_dir]:
            d.mkdir(parents=True, exist_ok=True)

    def accounts(self) -> list[RemoteAccount]:
        """All configured remote accounts, shortcut account first."""
        accounts: list[RemoteAccount] = []
        if self.username:
            accounts.append(
                RemoteAccount(
                    name=self.account,
                    host=self.host,
                    port=self.port,
                    username=self.username,
                    password=self.password,
                    photo_library_path=self.photo_path,
                    use_ssl=self.use_ssl,
                )
            )
        seen = {a.name for a in accounts}
        accounts.extend(a for a in self.remote_accounts if a.name not in seen)
        return accounts

    def archive_accounts(self) -> list[str]:
        """Archive account names that have a pairing (explicit or same-name)."""
        names = [a.name for a in self.accounts()]
        for archive_name in self.pairings:
            if archive_name not in names:
                names.append(archive_name)
        return names

    def get_paired_account(self, archive_account: str) -> RemoteAccount:
        """Resolve the remote account that receives uploads for an archive account.

        Accounts pair by name unless an explicit pairing says otherwise.
        """
        target = self.pairings.get(archive_account, archive_account)
        for account in self.accounts():
            if account.name == target:
                return account
        raise ConfigurationError(
            f'No remote account paired with "{archive_account}". '
            f"Set TAKEOUT_SYNC_PAIRINGS or configure an account with that name."
        )


settings = Settings()
