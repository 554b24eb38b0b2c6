from pydantic import BaseModel, Field
from typing import Optional

from backoffice.modules.sequences.models import SequenceScope


class SequenceDefinitionCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=40)
    name: str = Field(..., min_length=1, max_length=120)
    scope: SequenceScope
    prefix: str = Field("", max_length=20)
    suffix: str = Field("", max_length=20)
    padding: int = Field(6, description="Se ajusta al rango 1..18")
    start_value: int = Field(1, description="Valores negativos se llevan a cero")
    step: int = Field(1, description="Mínimo 1")
    is_active: bool = True


class SequenceDefinitionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    prefix: Optional[str] = Field(None, max_length=20)
    suffix: Optional[str] = Field(None, max_length=20)
    padding: Optional[int] = None
    start_value: Optional[int] = None
    step: Optional[int] = None
    is_active: Optional[bool] = None


class SequenceDefinitionOut(BaseModel):
    id: int
    code: str
    name: str
    scope: SequenceScope
    prefix: str
    suffix: str
    padding: int
    start_value: int
    step: int
    is_active: bool
    next_preview: Optional[str] = None


class InventoryAssignment(BaseModel):
    transaction_type: str
    label: str
    sequence_code: Optional[str] = None
    next_preview: Optional[str] = None


class InventoryAssignmentUpdate(BaseModel):
    sequence_code: str = Field(..., min_length=1, max_length=40)
