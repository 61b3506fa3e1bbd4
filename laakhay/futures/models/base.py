"""Base model for exchange payloads."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class FuturesModel(BaseModel):
    """Immutable payload model.

    Field names are snake_case; the exchange's camelCase names are accepted as
    aliases. Numeric strings (prices, quantities) are kept verbatim as the
    exchange sent them. Unknown fields are ignored so additive API changes do
    not break parsing.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )
