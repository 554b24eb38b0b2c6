"""
Pedidos (comandas) de cocina

Un pedido OPEN por mesa refleja las líneas enviadas por el mesero. Al
facturarse o anularse, la mesa pasa a "facturado" o "anulado".
"""
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from uuid import uuid4
from sqlalchemy.orm import Session, selectinload
from fastapi import HTTPException, status
import logging

from backoffice.common.utils import utcnow, round_money, to_decimal
from backoffice.common.validators import normalize_code, clean_text
from backoffice.modules.orders.models import Order, OrderItem, OrderStatus
from backoffice.modules.orders.schemas import (
    OrderCreate, OrderItemInput, OrderItemUpdate, OrderOut, OrderItemOut
)
from backoffice.modules.tables.models import DiningTable, TableStatus
from backoffice.modules.tables.state import apply_table_status, store_sent_items

logger = logging.getLogger(__name__)


def table_status_for_order(order_status: OrderStatus) -> TableStatus:
    if order_status == OrderStatus.OPEN:
        return TableStatus.NORMAL
    if order_status == OrderStatus.INVOICED:
        return TableStatus.FACTURADO
    return TableStatus.ANULADO


def item_to_line(item: OrderItem) -> dict:
    return {
        "article_code": item.article_code,
        "name": item.description,
        "quantity": float(item.quantity),
        "unit_price": float(item.unit_price or 0),
        "notes": item.notes,
    }


class OrderService:
    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Order).options(
            selectinload(Order.items),
            selectinload(Order.table)
        )

    def get_order_model(self, order_id: int) -> Order:
        order = self._query().filter(Order.id == order_id).first()
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Pedido no encontrado"
            )
        return order

    def get_order(self, order_id: int) -> OrderOut:
        return self.to_output(self.get_order_model(order_id))

    def list_open_orders(self) -> List[OrderOut]:
        orders = self._query().filter(Order.status == OrderStatus.OPEN).order_by(Order.opened_at, Order.id).all()
        return [self.to_output(order) for order in orders]

    def find_open_order_for_table(self, table_id: str) -> Optional[Order]:
        return self._query().filter(
            Order.table_id == table_id,
            Order.status == OrderStatus.OPEN
        ).order_by(Order.opened_at, Order.id).first()

    def _ensure_open(self, order: Order) -> None:
        if order.status != OrderStatus.OPEN:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="El pedido ya fue cerrado"
            )

    def _build_item(self, data: OrderItemInput) -> OrderItem:
        code = normalize_code(data.article_code)
        name = (data.name or "").strip()
        if not code or not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El artículo necesita código y nombre"
            )
        if to_decimal(data.quantity) <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La cantidad debe ser mayor a cero"
            )
        return OrderItem(
            article_code=code,
            description=name,
            quantity=data.quantity,
            unit_price=round_money(data.unit_price or 0),
            modifiers=list(data.modifiers or []),
            notes=clean_text(data.notes, 200)
        )

    def _sync_table(self, order: Order) -> None:
        """Refleja el pedido en el estado de su mesa."""
        if not order.table_id:
            return
        self.db.flush()
        self.db.refresh(order)
        table_status = table_status_for_order(order.status)
        if table_status == TableStatus.NORMAL:
            store_sent_items(
                self.db, order.table_id, table_status,
                [item_to_line(item) for item in order.items],
                waiter_name=order.waiter_name
            )
        else:
            apply_table_status(self.db, order.table, table_status)

    def create_order(self, data: OrderCreate, commit: bool = True) -> OrderOut:
        table_id = normalize_code(data.table_id) or None
        if table_id and not self.db.get(DiningTable, table_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Mesa no encontrada"
            )
        order = Order(
            order_code=f"ORD-{uuid4().hex[:8].upper()}",
            table_id=table_id,
            waiter_code=normalize_code(data.waiter_code) or None,
            waiter_name=clean_text(data.waiter_name, 160),
            guests=data.guests,
            status=OrderStatus.OPEN,
            opened_at=utcnow(),
            notes=clean_text(data.notes)
        )
        for item in data.items:
            order.items.append(self._build_item(item))
        self.db.add(order)
        self._sync_table(order)
        if commit:
            self.db.commit()
        logger.info(f"Pedido creado: {order.order_code} (mesa {table_id or '-'})")
        return self.to_output(order)

    def add_order_item(self, order_id: int, data: OrderItemInput) -> OrderOut:
        order = self.get_order_model(order_id)
        self._ensure_open(order)
        order.items.append(self._build_item(data))
        self._sync_table(order)
        self.db.commit()
        return self.get_order(order_id)

    def update_order_item(self, order_id: int, item_id: int, data: OrderItemUpdate) -> OrderOut:
        order = self.get_order_model(order_id)
        self._ensure_open(order)
        item = next((row for row in order.items if row.id == item_id), None)
        if not item:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Artículo no encontrado en el pedido"
            )
        fields = data.model_dump(exclude_unset=True)
        if data.quantity is not None:
            if data.quantity <= 0:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="La cantidad debe ser mayor a cero"
                )
            item.quantity = data.quantity
        if data.unit_price is not None:
            item.unit_price = round_money(data.unit_price)
        if data.modifiers is not None:
            item.modifiers = list(data.modifiers)
        if "notes" in fields:
            item.notes = clean_text(data.notes, 200)
        self._sync_table(order)
        self.db.commit()
        return self.get_order(order_id)

    def remove_order_item(self, order_id: int, item_id: int) -> OrderOut:
        order = self.get_order_model(order_id)
        self._ensure_open(order)
        item = next((row for row in order.items if row.id == item_id), None)
        if not item:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Artículo no encontrado en el pedido"
            )
        order.items.remove(item)
        self._sync_table(order)
        self.db.commit()
        return self.get_order(order_id)

    def update_order_notes(self, order_id: int, notes: Optional[str]) -> OrderOut:
        order = self.get_order_model(order_id)
        self._ensure_open(order)
        order.notes = clean_text(notes)
        self.db.commit()
        return self.get_order(order_id)

    def update_order_guests(self, order_id: int, guests: Optional[int]) -> OrderOut:
        order = self.get_order_model(order_id)
        self._ensure_open(order)
        if guests is not None and guests < 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El número de comensales no puede ser negativo"
            )
        order.guests = guests
        self.db.commit()
        return self.get_order(order_id)

    def mark_order_as_invoiced(self, order_id: int, invoice_date: Optional[datetime] = None, commit: bool = True) -> OrderOut:
        order = self.get_order_model(order_id)
        order.status = OrderStatus.INVOICED
        order.closed_at = invoice_date or utcnow()
        self._sync_table(order)
        if commit:
            self.db.commit()
        logger.info(f"Pedido {order.order_code} facturado")
        return self.to_output(order)

    def cancel_order(self, order_id: int) -> OrderOut:
        order = self.get_order_model(order_id)
        self._ensure_open(order)
        order.status = OrderStatus.CANCELLED
        order.closed_at = utcnow()
        self._sync_table(order)
        self.db.commit()
        logger.info(f"Pedido {order.order_code} anulado")
        return self.get_order(order_id)

    def sync_waiter_order_for_table(
        self,
        table_id: str,
        waiter_code: Optional[str],
        waiter_name: Optional[str],
        sent_items: List[OrderItemInput]
    ) -> Optional[int]:
        """
        Crea el pedido OPEN de la mesa o reemplaza sus líneas con las enviadas
        por el mesero. Sin pedido y sin líneas no hace nada. No hace commit.
        """
        order = self.find_open_order_for_table(table_id)
        if order is None:
            if not sent_items:
                return None
            created = self.create_order(OrderCreate(
                table_id=table_id,
                waiter_code=waiter_code,
                waiter_name=waiter_name,
                items=sent_items
            ), commit=False)
            return created.id

        order.waiter_code = normalize_code(waiter_code) or order.waiter_code
        order.waiter_name = clean_text(waiter_name, 160) or order.waiter_name
        order.items.clear()
        self.db.flush()
        for item in sent_items:
            order.items.append(self._build_item(item))
        self._sync_table(order)
        return order.id

    def to_output(self, order: Order) -> OrderOut:
        total = sum((to_decimal(i.quantity) * to_decimal(i.unit_price) for i in order.items), Decimal("0"))
        return OrderOut(
            id=order.id,
            order_code=order.order_code,
            table_id=order.table_id,
            table_label=order.table.label if order.table else None,
            waiter_code=order.waiter_code,
            waiter_name=order.waiter_name,
            guests=order.guests,
            status=order.status,
            opened_at=order.opened_at,
            closed_at=order.closed_at,
            notes=order.notes,
            items=[
                OrderItemOut(
                    id=item.id,
                    article_code=item.article_code,
                    name=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    modifiers=list(item.modifiers or []),
                    notes=item.notes
                )
                for item in order.items
            ],
            total=round_money(total)
        )
