from pydantic import BaseModel, ConfigDict


MONTH_REGEX = r"^\d{4}-(0[1-9]|1[0-2])$"


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class MessageResponse(BaseModel):
    message: str
