"""
Escritura del estado operativo de una mesa.

Compartido por el servicio de mesas y el de pedidos. No hace commit.
"""
from typing import Optional, List
from sqlalchemy.orm import Session

from backoffice.common.utils import utcnow
from backoffice.modules.tables.models import TableState, TableStatus


def get_or_create_state(db: Session, table_id: str) -> TableState:
    state = db.get(TableState, table_id)
    if state is None:
        state = TableState(
            table_id=table_id,
            status=TableStatus.NORMAL,
            pending_items=[],
            sent_items=[]
        )
        db.add(state)
    return state


def apply_table_status(db: Session, table, status: TableStatus) -> TableState:
    """
    Cambia el estado de la mesa.

    Fuera de "normal" la mesa queda libre: sin mesero, sin líneas y sin
    reservación.
    """
    state = get_or_create_state(db, table.id)
    state.status = status
    if status != TableStatus.NORMAL:
        state.assigned_waiter_id = None
        state.assigned_waiter_name = None
        state.pending_items = []
        state.sent_items = []
        if table.reservation is not None:
            db.delete(table.reservation)
    state.updated_at = utcnow()
    db.flush()
    return state


def store_sent_items(db: Session, table_id: str, status: TableStatus, sent_items: List[dict],
                     waiter_id: Optional[int] = None, waiter_name: Optional[str] = None) -> TableState:
    state = get_or_create_state(db, table_id)
    state.status = status
    state.sent_items = list(sent_items)
    if waiter_id is not None:
        state.assigned_waiter_id = waiter_id
    if waiter_name:
        state.assigned_waiter_name = waiter_name
    state.updated_at = utcnow()
    db.flush()
    return state
