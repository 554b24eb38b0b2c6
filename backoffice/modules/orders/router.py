from fastapi import APIRouter, Depends, status
from typing import List
from sqlalchemy.orm import Session

from backoffice.dependencies.dbDependencies import get_db
from backoffice.modules.orders.service import OrderService
from backoffice.modules.orders.schemas import (
    OrderCreate, OrderItemInput, OrderItemUpdate, OrderNotesUpdate, OrderGuestsUpdate, OrderOut
)

orders_router = APIRouter(prefix="/orders", tags=["Orders"])


@orders_router.get("/", response_model=List[OrderOut])
def list_open_orders(db: Session = Depends(get_db)):
    """Pedidos abiertos, del más antiguo al más reciente."""
    return OrderService(db).list_open_orders()


@orders_router.post("/", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(data: OrderCreate, db: Session = Depends(get_db)):
    return OrderService(db).create_order(data)


@orders_router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, db: Session = Depends(get_db)):
    return OrderService(db).get_order(order_id)


@orders_router.post("/{order_id}/items", response_model=OrderOut)
def add_order_item(order_id: int, data: OrderItemInput, db: Session = Depends(get_db)):
    return OrderService(db).add_order_item(order_id, data)


@orders_router.patch("/{order_id}/items/{item_id}", response_model=OrderOut)
def update_order_item(order_id: int, item_id: int, data: OrderItemUpdate, db: Session = Depends(get_db)):
    return OrderService(db).update_order_item(order_id, item_id, data)


@orders_router.delete("/{order_id}/items/{item_id}", response_model=OrderOut)
def remove_order_item(order_id: int, item_id: int, db: Session = Depends(get_db)):
    return OrderService(db).remove_order_item(order_id, item_id)


@orders_router.patch("/{order_id}/notes", response_model=OrderOut)
def update_order_notes(order_id: int, data: OrderNotesUpdate, db: Session = Depends(get_db)):
    return OrderService(db).update_order_notes(order_id, data.notes)


@orders_router.patch("/{order_id}/guests", response_model=OrderOut)
def update_order_guests(order_id: int, data: OrderGuestsUpdate, db: Session = Depends(get_db)):
    return OrderService(db).update_order_guests(order_id, data.guests)


@orders_router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(order_id: int, db: Session = Depends(get_db)):
    """Anular el pedido; la mesa queda en estado "anulado"."""
    return OrderService(db).cancel_order(order_id)
