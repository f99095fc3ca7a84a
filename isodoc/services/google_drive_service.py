from typing import List, Optional, Tuple
from dataclasses import dataclass
from datetime import datetime, timezone
from google.oauth2.credentials import Credentials
from google.auth.exceptions import RefreshError
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload
import asyncio
import io
from isodoc.core.config import Settings, get_settings
from isodoc.core.exceptions import DriveError, SyncConfigurationError
from isodoc.models.base import Client
import logging

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/drive.readonly']
AUTH_URI = 'https://accounts.google.com/o/oauth2/auth'

FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'
GOOGLE_APPS_PREFIX = 'application/vnd.google-apps.'

# Google Workspace MIME types and the format they are exported to
GOOGLE_EXPORT_FORMATS = {
    'application/vnd.google-apps.spreadsheet': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'application/vnd.google-apps.document': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.google-apps.presentation': 'application/vnd.openxmlformats-officedocument.presentationml.presentation',
    'application/vnd.google-apps.drawing': 'application/pdf',
}

LIST_FIELDS = "nextPageToken, files(id, name, mimeType, webViewLink)"
PAGE_SIZE = 1000

@dataclass(frozen=True)
class RemoteFile:
    id: str
    name: str
    mime_type: str
    view_url: str = ""

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

def _epoch_ms_to_expiry(value: Optional[int]) -> Optional[datetime]:
    # google-auth compares expiry against naive UTC
    if not value:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)

def credentials_to_bundle(creds: Credentials) -> Tuple[Optional[str], Optional[str], Optional[int]]:
    """(access token, refresh token, expiry in epoch ms) for storage on a Client."""
    expiry_ms = None
    if creds.expiry:
        expiry_ms = int(creds.expiry.replace(tzinfo=timezone.utc).timestamp() * 1000)
    return creds.token, creds.refresh_token, expiry_ms

def build_credentials(client: Client, settings: Optional[Settings] = None) -> Credentials:
    settings = settings or get_settings()
    if not client.has_credentials:
        raise SyncConfigurationError(f"Client {client.id} has no Google credentials")
    return Credentials(
        token=client.google_access_token,
        refresh_token=client.google_refresh_token,
        token_uri=settings.GOOGLE_TOKEN_URI,
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        scopes=SCOPES,
        expiry=_epoch_ms_to_expiry(client.google_token_expiry),
    )

def _client_config(settings: Settings) -> dict:
    return {
        "web": {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
            "auth_uri": AUTH_URI,
            "token_uri": settings.GOOGLE_TOKEN_URI,
            "redirect_uris": [settings.GOOGLE_REDIRECT_URI],
        }
    }

def create_oauth_flow(settings: Optional[Settings] = None) -> Flow:
    settings = settings or get_settings()
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        raise SyncConfigurationError("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET are not configured")
    return Flow.from_client_config(
        _client_config(settings),
        scopes=SCOPES,
        redirect_uri=settings.GOOGLE_REDIRECT_URI,
        autogenerate_code_verifier=False,
    )

def get_authorization_url(state: str, settings: Optional[Settings] = None) -> str:
    """Consent URL for linking a tenant's Drive; state comes back on the callback."""
    flow = create_oauth_flow(settings)
    url, _ = flow.authorization_url(
        access_type="offline",
        prompt="consent",
        include_granted_scopes="true",
        state=state,
    )
    return url

def exchange_code(code: str, settings: Optional[Settings] = None) -> Credentials:
    flow = create_oauth_flow(settings)
    flow.fetch_token(code=code)
    return flow.credentials

class GoogleDriveService:
    def __init__(self, credentials: Credentials, timeout: Optional[float] = None):
        self.creds = credentials
        self.timeout = timeout or get_settings().DRIVE_CALL_TIMEOUT_SECONDS
        self.service = build('drive', 'v3', credentials=self.creds, cache_discovery=False)

    @classmethod
    def for_client(cls, client: Client, settings: Optional[Settings] = None) -> "GoogleDriveService":
        settings = settings or get_settings()
        return cls(build_credentials(client, settings), timeout=settings.DRIVE_CALL_TIMEOUT_SECONDS)

    def credential_bundle(self) -> Tuple[Optional[str], Optional[str], Optional[int]]:
        return credentials_to_bundle(self.creds)

    async def _call(self, description: str, func, *args):
        """Run a blocking API call off the event loop with a deadline."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise DriveError(f"{description} timed out after {self.timeout}s") from e
        except (HttpError, RefreshError) as e:
            raise DriveError(f"{description} failed: {e}") from e

    def _list_page(self, folder_id: str, page_token: Optional[str]) -> dict:
        return self.service.files().list(
            q=f"'{folder_id}' in parents and trashed = false",
            fields=LIST_FIELDS,
            pageSize=PAGE_SIZE,
            pageToken=page_token,
            supportsAllDrives=True,
            includeItemsFromAllDrives=True,
        ).execute()

    async def list_files(self, folder_id: str) -> List[RemoteFile]:
        """List the direct children of one folder, following every result page."""
        files = []
        page_token = None
        while True:
            results = await self._call(f"Listing folder {folder_id}", self._list_page, folder_id, page_token)
            for item in results.get('files', []):
                files.append(RemoteFile(
                    id=item['id'],
                    name=item.get('name', ''),
                    mime_type=item.get('mimeType', ''),
                    view_url=item.get('webViewLink', ''),
                ))
            page_token = results.get('nextPageToken')
            if not page_token:
                break
        logger.debug(f"Listed {len(files)} entries in folder {folder_id}")
        return files

    def _download(self, file_id: str, dest_path: str, mime_type: str) -> None:
        if mime_type == FOLDER_MIME_TYPE:
            raise DriveError(f"Cannot download folder {file_id}")
        if mime_type in GOOGLE_EXPORT_FORMATS:
            logger.info(f"Exporting Google Workspace file {file_id} as {GOOGLE_EXPORT_FORMATS[mime_type]}")
            request = self.service.files().export_media(fileId=file_id, mimeType=GOOGLE_EXPORT_FORMATS[mime_type])
        elif mime_type.startswith(GOOGLE_APPS_PREFIX):
            raise DriveError(f"Google file type {mime_type} cannot be exported")
        else:
            request = self.service.files().get_media(fileId=file_id)

        with io.FileIO(dest_path, 'wb') as fh:
            downloader = MediaIoBaseDownload(fh, request)
            done = False
            while not done:
                _, done = downloader.next_chunk()

    async def download_file(self, file_id: str, dest_path: str, mime_type: str) -> None:
        await self._call(f"Downloading file {file_id}", self._download, file_id, dest_path, mime_type)
