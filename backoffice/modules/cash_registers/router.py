from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from sqlalchemy.orm import Session

from backoffice.dependencies.dbDependencies import get_db
from backoffice.dependencies.operatorDependencies import operator_dependency
from backoffice.modules.cash_registers.service import CashRegisterService, CashSessionService
from backoffice.modules.cash_registers.schemas import (
    CashRegisterCreate, CashRegisterUpdate, CashRegisterOut, InvoiceSequenceAssignment,
    CashRegisterAssignmentGroup, CashRegisterAssignmentOut, AssignmentRequest,
    OpenSessionRequest, CloseSessionRequest, SessionOut, ClosureSummary
)

cash_registers_router = APIRouter(prefix="/cash-registers", tags=["Cash Registers"])


@cash_registers_router.get("/", response_model=List[CashRegisterOut])
def list_cash_registers(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db)
):
    return CashRegisterService(db).list_cash_registers(include_inactive)


@cash_registers_router.post("/", response_model=CashRegisterOut, status_code=status.HTTP_201_CREATED)
def create_cash_register(data: CashRegisterCreate, db: Session = Depends(get_db)):
    """Crear una caja ligada a un almacén activo."""
    return CashRegisterService(db).create_cash_register(data)


# Assignments
@cash_registers_router.get("/assignments", response_model=List[CashRegisterAssignmentGroup])
def list_assignments(
    admin_user_id: Optional[List[int]] = Query(None),
    db: Session = Depends(get_db)
):
    return CashRegisterService(db).list_assignments(admin_user_id)


@cash_registers_router.get("/mine", response_model=List[CashRegisterAssignmentOut])
def list_my_cash_registers(operator_id: operator_dependency, db: Session = Depends(get_db)):
    """Cajas activas asignadas al operador."""
    return CashRegisterService(db).list_registers_for_user(operator_id)


@cash_registers_router.post("/assignments", response_model=CashRegisterAssignmentGroup)
def assign_cash_register(data: AssignmentRequest, db: Session = Depends(get_db)):
    return CashRegisterService(db).assign_cash_register(
        data.admin_user_id, data.cash_register_code, data.make_default
    )


@cash_registers_router.delete("/assignments/{admin_user_id}/{cash_register_code}", response_model=CashRegisterAssignmentGroup)
def unassign_cash_register(admin_user_id: int, cash_register_code: str, db: Session = Depends(get_db)):
    return CashRegisterService(db).unassign_cash_register(admin_user_id, cash_register_code)


@cash_registers_router.put("/assignments/{admin_user_id}/default", response_model=CashRegisterAssignmentGroup)
def set_default_cash_register(
    admin_user_id: int,
    cash_register_code: str = Query(...),
    db: Session = Depends(get_db)
):
    return CashRegisterService(db).set_default_cash_register(admin_user_id, cash_register_code)


# Sessions
@cash_registers_router.get("/sessions/active", response_model=Optional[SessionOut])
def get_active_session(operator_id: operator_dependency, db: Session = Depends(get_db)):
    """Apertura activa del operador, o null."""
    service = CashSessionService(db)
    session = service.get_active_session(operator_id)
    return service.to_output(session) if session else None


@cash_registers_router.get("/sessions/open", response_model=List[SessionOut])
def list_open_sessions(db: Session = Depends(get_db)):
    service = CashSessionService(db)
    return [service.to_output(session) for session in service.list_active_sessions()]


@cash_registers_router.get("/sessions/recent", response_model=List[SessionOut])
def list_recent_sessions(
    operator_id: operator_dependency,
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db)
):
    service = CashSessionService(db)
    return [service.to_output(session) for session in service.list_recent_sessions(operator_id, limit)]


@cash_registers_router.post("/sessions", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
def open_session(data: OpenSessionRequest, operator_id: operator_dependency, db: Session = Depends(get_db)):
    """
    Abrir caja.

    Requiere el encabezado X-Admin-User-ID del operador.
    """
    service = CashSessionService(db)
    return service.to_output(service.open_session(operator_id, data))


@cash_registers_router.post("/sessions/close", response_model=ClosureSummary)
def close_session(data: CloseSessionRequest, operator_id: operator_dependency, db: Session = Depends(get_db)):
    """Cerrar caja con arqueo por método de pago."""
    return CashSessionService(db).close_session(operator_id, data)


@cash_registers_router.get("/sessions/{session_id}/report", response_model=ClosureSummary)
def get_closure_report(session_id: int, db: Session = Depends(get_db)):
    return CashSessionService(db).get_closure_report(session_id)


@cash_registers_router.patch("/{code}", response_model=CashRegisterOut)
def update_cash_register(code: str, data: CashRegisterUpdate, db: Session = Depends(get_db)):
    return CashRegisterService(db).update_cash_register(code, data)


@cash_registers_router.put("/{code}/invoice-sequence", response_model=CashRegisterOut)
def set_invoice_sequence(code: str, data: InvoiceSequenceAssignment, db: Session = Depends(get_db)):
    return CashRegisterService(db).set_invoice_sequence(code, data.sequence_code)
