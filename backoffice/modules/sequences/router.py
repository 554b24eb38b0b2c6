from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from sqlalchemy.orm import Session

from backoffice.dependencies.dbDependencies import get_db
from backoffice.modules.sequences.models import SequenceScope
from backoffice.modules.sequences.service import SequenceService
from backoffice.modules.sequences.schemas import (
    SequenceDefinitionCreate, SequenceDefinitionUpdate, SequenceDefinitionOut,
    InventoryAssignment, InventoryAssignmentUpdate
)

sequences_router = APIRouter(prefix="/sequences", tags=["Sequences"])


@sequences_router.get("/", response_model=List[SequenceDefinitionOut])
def list_sequences(
    scope: Optional[SequenceScope] = Query(None),
    db: Session = Depends(get_db)
):
    """Listar consecutivos con la vista previa del siguiente folio."""
    return SequenceService(db).list_definitions(scope)


@sequences_router.post("/", response_model=SequenceDefinitionOut, status_code=status.HTTP_201_CREATED)
def create_sequence(data: SequenceDefinitionCreate, db: Session = Depends(get_db)):
    return SequenceService(db).create_definition(data)


@sequences_router.patch("/{code}", response_model=SequenceDefinitionOut)
def update_sequence(code: str, data: SequenceDefinitionUpdate, db: Session = Depends(get_db)):
    return SequenceService(db).update_definition(code, data)


@sequences_router.get("/inventory", response_model=List[InventoryAssignment])
def list_inventory_assignments(db: Session = Depends(get_db)):
    """Consecutivo asignado a cada tipo de movimiento de inventario."""
    return SequenceService(db).list_inventory_assignments()


@sequences_router.put("/inventory/{transaction_type}", response_model=InventoryAssignment)
def assign_inventory_sequence(
    transaction_type: str,
    data: InventoryAssignmentUpdate,
    db: Session = Depends(get_db)
):
    return SequenceService(db).assign_inventory_sequence(transaction_type, data.sequence_code)
