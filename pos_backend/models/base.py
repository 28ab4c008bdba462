from typing import Annotated, Any, Dict, Type, TypeVar
from pydantic import BaseModel, BeforeValidator, Field, ConfigDict

# Mongo ObjectIds travel through the API as plain strings
PyObjectId = Annotated[str, BeforeValidator(str)]

T = TypeVar("T", bound="MongoModel")

class MongoModel(BaseModel):
    """Stored document. `id` maps to Mongo's `_id` and is left out of writes until assigned."""
    id: PyObjectId | None = Field(default=None, alias="_id")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_mongo(cls: Type[T], data: Dict[str, Any]) -> T:
        if not data:
            return None
        doc = dict(data)
        return cls(id=doc.pop("_id", None), **doc)

    def to_mongo(self, exclude_none: bool = False) -> Dict[str, Any]:
        doc = self.model_dump(by_alias=True, exclude_none=exclude_none)
        if doc.get("_id") is None:
            doc.pop("_id", None)
        return doc
