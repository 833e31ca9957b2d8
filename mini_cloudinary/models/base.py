# mini_cloudinary/models/base.py
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CatalogModel(BaseModel):
    """Base for catalog rows; the snapshot document uses camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
