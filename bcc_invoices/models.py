import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .calculator import safe_float


class LineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    designation: str = ""
    quantity: float = 0
    unit_price: float = Field(default=0, alias="unitPrice")
    # supplied by the caller, never derived from quantity x unit price
    total_price: Optional[float] = Field(default=None, alias="totalPrice")

    # malformed amounts count as 0 instead of rejecting the invoice
    @field_validator("quantity", "unit_price", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return safe_float(v)

    @field_validator("total_price", mode="before")
    @classmethod
    def coerce_total(cls, v):
        if v is None:
            return None
        return safe_float(v)


class InvoiceIn(BaseModel):
    """Body of POST and PUT /invoices."""

    model_config = ConfigDict(populate_by_name=True)

    items: List[LineItem] = []
    client_name: str = Field(alias="clientName")
    client_number: str = Field(alias="clientNumber")
    client_address: str = Field(alias="clientAddress")
    client_mf: str = Field(alias="clientMF")
    date: Optional[dt.date] = None
    timbre: Optional[float] = None
    total_remise: Optional[float] = Field(default=None, alias="totalRemise")

    def record_fields(self, fill_date: bool = True) -> dict:
        """Stored representation, without the totals."""
        data = self.model_dump(
            mode="json",
            by_alias=True,
            exclude={"timbre", "total_remise"},
        )
        if data["date"] is None:
            if fill_date:
                data["date"] = dt.datetime.now(dt.timezone.utc).date().isoformat()
            else:
                # keep the stored date on update
                del data["date"]
        return data
