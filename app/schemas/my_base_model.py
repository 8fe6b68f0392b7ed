from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CustomBaseModel(BaseModel):
    """Custom base model for all response schemas.
    - fields are declared snake_case and serialized camelCase (accessToken, signAddress, ...)
    - can be populated by field name or by alias
    - can be built from ORM objects with model_validate
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Message(CustomBaseModel):
    status: int = 200
    message: str = ""
