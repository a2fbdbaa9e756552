"""User profile records, keyed by the user's identity."""

from __future__ import annotations

from kombucha_store.records.store import Record, RecordStore


class UserRepository(RecordStore):
    async def create_profile(self, user_id: str, display_name: str, email: str, owner_id: str, *, role: str = "brewer") -> Record:
        return await self.create(
            {"displayName": display_name, "email": email, "role": role, "isActive": True},
            owner_id,
            record_id=user_id,
        )

    async def update_role(self, user_id: str, role: str, owner_id: str) -> None:
        await self.update(user_id, {"role": role}, owner_id)

    async def update_last_login(self, user_id: str, owner_id: str) -> None:
        await self.update(user_id, {"lastLogin": self._clock()}, owner_id)

    async def deactivate(self, user_id: str, owner_id: str) -> None:
        await self.update(user_id, {"isActive": False, "deactivatedAt": self._clock()}, owner_id)

    async def get_by_role(self, role: str, owner_id: str) -> list[Record]:
        return [u for u in await self.get_all(owner_id) if u["role"] == role]
