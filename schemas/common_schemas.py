# schemas/common_schemas.py
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case attribute names in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MessageResponse(CamelModel):
    message: str


def page_count(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if limit > 0 else 0
