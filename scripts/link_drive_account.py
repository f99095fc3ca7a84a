"""
Link a client to a Google Drive account from the command line.

Runs the installed-app consent flow in a local browser and stores the
resulting token bundle on the client, the same way the web callback does.

    python scripts/link_drive_account.py <client_id> [--secrets google_credentials/credentials.json]
"""

from google_auth_oauthlib.flow import InstalledAppFlow
import argparse
import asyncio
import os
from isodoc.core.database import SessionLocal, init_db
from isodoc.repositories.client_repository import ClientRepository
from isodoc.services.google_drive_service import SCOPES, credentials_to_bundle

DEFAULT_SECRETS_PATH = 'google_credentials/credentials.json'

async def store_bundle(client_id: int, creds) -> None:
    await init_db()
    async with SessionLocal() as session:
        clients = ClientRepository(session)
        client = await clients.get(client_id)
        if client is None:
            raise SystemExit(f"Client {client_id} does not exist")
        access_token, refresh_token, expiry_ms = credentials_to_bundle(creds)
        await clients.store_credentials(client, access_token, refresh_token, expiry_ms)
        print(f"Stored Google credentials for client {client_id} ({client.name})")

def link_drive_account(client_id: int, secrets_path: str) -> None:
    # Check if credentials.json exists
    if not os.path.exists(secrets_path):
        raise FileNotFoundError(
            f"{secrets_path} not found. Download the OAuth client file from Google Cloud Console."
        )

    flow = InstalledAppFlow.from_client_secrets_file(secrets_path, SCOPES)
    creds = flow.run_local_server(port=0, access_type="offline", prompt="consent")
    asyncio.run(store_bundle(client_id, creds))

if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Link a client to a Google Drive account")
    parser.add_argument("client_id", type=int)
    parser.add_argument("--secrets", default=DEFAULT_SECRETS_PATH)
    args = parser.parse_args()
    link_drive_account(args.client_id, args.secrets)
