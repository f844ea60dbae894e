from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_validator


class StoreRecord(BaseModel):
    """Base for rows read from the record store.

    Ids are opaque strings to the engine; uuid columns come back from asyncpg
    as UUID objects and are converted here.
    """

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def uuids_to_str(cls, data):
        if isinstance(data, dict):
            return {k: str(v) if isinstance(v, UUID) else v for k, v in data.items()}
        return data
