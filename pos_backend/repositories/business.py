from typing import Optional
from pos_backend.repositories.base import BaseRepository
from pos_backend.models.business import Business

class BusinessRepository(BaseRepository[Business]):
    async def get_by_business_id(self, business_id: str) -> Optional[Business]:
        doc = await self.collection.find_one({"business_id": business_id})
        return self.model_cls.from_mongo(doc) if doc else None
