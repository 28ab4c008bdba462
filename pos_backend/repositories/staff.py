from typing import Optional
from pos_backend.repositories.base import BaseRepository
from pos_backend.models.staff import StaffUser

class StaffRepository(BaseRepository[StaffUser]):
    async def get_by_email(self, email: str) -> Optional[StaffUser]:
        doc = await self.collection.find_one({"email": email.strip().lower()})
        return self.model_cls.from_mongo(doc) if doc else None

    async def get_by_staff_id(self, staff_id: str) -> Optional[StaffUser]:
        return await self.get_by_field("staff_id", staff_id)
