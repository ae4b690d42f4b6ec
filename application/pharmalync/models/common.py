from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


def _to_decimal(value: Any) -> Any:
    # via str so a stored 579.5 stays 579.5 instead of its binary expansion
    return Decimal(str(value)) if isinstance(value, float) else value


# Rupee amounts: Decimal in Python, a plain number in Firestore and JSON
Amount = Annotated[Decimal, BeforeValidator(_to_decimal), PlainSerializer(float, return_type=float)]


class DocumentModel(BaseModel):
    """
    Base for records persisted as Firestore documents.

    Attribute names are snake_case in Python and camelCase in storage and on
    the wire.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self, exclude: set[str] | None = None) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude=exclude)

    @classmethod
    def from_document(cls, data: dict[str, Any]):
        return cls.model_validate(data)
