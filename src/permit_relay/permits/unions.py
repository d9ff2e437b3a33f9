"""
Permit Request Polymorphic Types (Discriminated Unions)

Pydantic's discriminated union selects ``PermitRequest`` or
``BulkPermitRequest`` from the ``kind`` field, so a single validation entry
point can accept either shape without manual type detection.

Example usage:
    request = PermitRequestAdapter.validate_python({
        "kind": "bulk",
        "owner": "0x...",
        ...
    })
"""

from typing import Union

from pydantic import Field, TypeAdapter
from typing_extensions import Annotated

from .schemas import BulkPermitRequest, PermitRequest


# Selects the concrete request model from the 'kind' field value
PermitRequestTypes = Annotated[
    Union[
        PermitRequest,      # kind: "single"
        BulkPermitRequest,  # kind: "bulk"
    ],
    Field(discriminator="kind")
]


PermitRequestAdapter: TypeAdapter = TypeAdapter(PermitRequestTypes)


def parse_permit_request(payload: dict) -> Union[PermitRequest, BulkPermitRequest]:
    """Validate a plain dict into the concrete request model named by ``kind``."""
    return PermitRequestAdapter.validate_python(payload)
