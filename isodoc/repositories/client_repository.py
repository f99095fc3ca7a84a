from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from isodoc.models.base import Client
from isodoc.repositories.base import BaseRepository

class ClientRepository(BaseRepository[Client]):
    def __init__(self, session: AsyncSession):
        super().__init__(Client, session)

    async def get_by_name(self, name: str) -> Optional[Client]:
        result = await self.session.execute(select(Client).filter(Client.name == name))
        return result.scalar_one_or_none()

    async def get_by_folder_id(self, folder_id: str) -> Optional[Client]:
        result = await self.session.execute(
            select(Client).filter(Client.drive_folder_id == folder_id).limit(1)
        )
        return result.scalar_one_or_none()

    async def store_credentials(
        self,
        client: Client,
        access_token: Optional[str],
        refresh_token: Optional[str],
        expiry_epoch_ms: Optional[int],
    ) -> Client:
        values = {"google_access_token": access_token, "google_token_expiry": expiry_epoch_ms}
        # Google only returns a refresh token on the first consent.
        if refresh_token:
            values["google_refresh_token"] = refresh_token
        return await self.update(client, values)
