"""
Facturación

Una factura se emite dentro de la apertura de caja del usuario: toma el folio
del consecutivo de la caja, descarga inventario del almacén de la caja, cierra
el pedido de origen y, en ventas a crédito, deja el saldo en CxC.
"""
from typing import Optional, List
from datetime import date
from decimal import Decimal
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_, desc
from fastapi import HTTPException, status
import logging

from backoffice.core.config import settings
from backoffice.common.utils import (
    utcnow, round_money, to_decimal, resolve_occurred_at, business_date
)
from backoffice.common.validators import normalize_code, normalize_optional_code, clean_text
from backoffice.modules.inventory.schemas import InvoiceMovementLine
from backoffice.modules.inventory.service import InventoryService, date_bounds
from backoffice.modules.sequences.service import SequenceService
from backoffice.modules.cash_registers.service import CashSessionService
from backoffice.modules.orders.models import Order
from backoffice.modules.orders.service import OrderService
from backoffice.modules.tables.models import DiningTable
from backoffice.modules.staff.service import StaffService
from backoffice.modules.cxc.models import DocumentType
from backoffice.modules.cxc.schemas import DocumentCreate
from backoffice.modules.cxc.service import CustomerService, CustomerDocumentService
from backoffice.modules.invoices.models import Invoice, InvoiceItem, InvoicePayment, InvoiceStatus
from backoffice.modules.invoices.schemas import (
    InvoiceCreate, InvoiceCreated, InvoiceDetail, InvoiceList, InvoiceListItem, InvoiceCancelResult
)

logger = logging.getLogger(__name__)


class InvoiceService:
    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Invoice).options(
            selectinload(Invoice.items),
            selectinload(Invoice.payments)
        )

    def get_invoice_model(self, invoice_id: int) -> Invoice:
        invoice = self._query().filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Factura no encontrada"
            )
        return invoice

    def get_invoice(self, invoice_id: int) -> InvoiceDetail:
        return InvoiceDetail.model_validate(self.get_invoice_model(invoice_id))

    def get_by_number(self, invoice_number: str) -> Optional[Invoice]:
        return self._query().filter(Invoice.invoice_number == (invoice_number or "").strip()).first()

    def _movement_lines(self, data: InvoiceCreate, origin_order: Optional[Order], register) -> List[InvoiceMovementLine]:
        """Líneas a descargar: las de la factura con artículo; si no hay, las del pedido."""
        default_warehouse = register.warehouse.code

        def line_warehouse(code: Optional[str]) -> str:
            if register.allow_manual_warehouse_override and normalize_code(code):
                return normalize_code(code)
            return default_warehouse

        lines = [
            InvoiceMovementLine(
                article_code=normalize_code(item.article_code),
                quantity=item.quantity,
                unit=item.unit,
                warehouse_code=line_warehouse(item.warehouse_code)
            )
            for item in data.items
            if normalize_code(item.article_code) and item.quantity > 0
        ]
        if not lines and origin_order is not None:
            lines = [
                InvoiceMovementLine(
                    article_code=item.article_code,
                    quantity=item.quantity,
                    warehouse_code=default_warehouse
                )
                for item in origin_order.items
            ]
        return lines

    def create_invoice(self, operator_id: int, data: InvoiceCreate) -> InvoiceCreated:
        """
        Emitir una factura.

        - Requiere una apertura de caja activa del operador
        - Sin saldo pendiente, salvo venta a CREDITO en modo retail con cliente
        - Descarga inventario y marca facturado el pedido de origen
        """
        sessions = CashSessionService(self.db)
        session = sessions.get_active_session(operator_id)
        if session is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Debes abrir una caja antes de facturar"
            )

        total_amount = round_money(data.total_amount)
        paid_amount = sum((to_decimal(p.amount) for p in data.payments), Decimal("0"))
        pending_amount = max(round_money(total_amount - paid_amount), Decimal("0"))

        customers = CustomerService(self.db)
        customer = None
        if normalize_code(data.customer_code):
            customer = customers.get_by_code_or_404(data.customer_code)
        retail_mode = settings.RETAIL_MODE_ENABLED
        if retail_mode and customer is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Debes seleccionar un cliente para facturar en modo retail"
            )
        credit_sale = retail_mode and data.sale_type == "CREDITO" and customer is not None
        if pending_amount > 0 and not credit_sale:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No puedes guardar la factura con saldo pendiente. Registra el cobro completo antes de continuar."
            )

        register = session.cash_register
        try:
            invoice_number = (data.invoice_number or "").strip()
            if not invoice_number:
                invoice_number = SequenceService(self.db).generate_invoice_number(register)
            if self.get_by_number(invoice_number):
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Ya existe una factura con el número {invoice_number}"
                )

            table_code = normalize_optional_code(data.table_code)
            if table_code and not self.db.get(DiningTable, table_code):
                table_code = None
            waiter_code = normalize_optional_code(data.waiter_code)
            if waiter_code and not StaffService(self.db).get_waiter_by_code(waiter_code):
                waiter_code = None

            origin_order = None
            if data.origin_order_id:
                origin_order = self.db.get(Order, data.origin_order_id)

            invoice_date = resolve_occurred_at(data.invoice_date)
            customer_name = clean_text(data.customer_name, 150) or (customer.name if customer else None)
            invoice = Invoice(
                invoice_number=invoice_number,
                table_code=table_code,
                waiter_code=waiter_code,
                invoice_date=invoice_date,
                origin_order_id=origin_order.id if origin_order else None,
                subtotal=round_money(data.subtotal),
                service_charge=round_money(data.service_charge),
                vat_amount=round_money(data.vat_amount),
                vat_rate=data.vat_rate,
                total_amount=total_amount,
                currency_code=normalize_optional_code(data.currency_code) or settings.LOCAL_CURRENCY_CODE,
                customer_name=customer_name,
                customer_tax_id=clean_text(data.customer_tax_id, 40) or (customer.tax_id if customer else None),
                customer_id=customer.id if customer else None,
                notes=clean_text(data.notes, 300),
                cash_register_id=register.id,
                cash_register_session_id=session.id,
                issuer_admin_user_id=operator_id,
                status=InvoiceStatus.FACTURADA
            )
            for index, item in enumerate(data.items, start=1):
                invoice.items.append(InvoiceItem(
                    line_number=index,
                    article_code=normalize_optional_code(item.article_code),
                    description=item.description.strip(),
                    quantity=item.quantity,
                    unit_price=round_money(item.unit_price),
                    line_total=round_money(to_decimal(item.quantity) * to_decimal(item.unit_price))
                ))
            for payment in data.payments:
                invoice.payments.append(InvoicePayment(
                    payment_method=payment.method,
                    amount=round_money(payment.amount),
                    reference=clean_text(payment.reference, 100)
                ))
            self.db.add(invoice)
            self.db.flush()

            InventoryService(self.db).register_invoice_movements(
                invoice_number,
                invoice_date,
                table_code,
                customer_name,
                self._movement_lines(data, origin_order, register)
            )
            sessions.record_invoice_sequence_usage(session, invoice_number)

            if origin_order is not None:
                OrderService(self.db).mark_order_as_invoiced(origin_order.id, invoice_date, commit=False)

            document_id = None
            if credit_sale and pending_amount > 0:
                document = CustomerDocumentService(self.db).create_document(
                    DocumentCreate(
                        customer_code=customer.code,
                        document_type=DocumentType.INVOICE,
                        document_number=invoice_number,
                        document_date=business_date(invoice_date),
                        due_date=data.due_date,
                        payment_term_code=data.payment_term_code,
                        currency_code=invoice.currency_code,
                        original_amount=pending_amount,
                        reference=f"Factura {invoice_number}"
                    ),
                    related_invoice_id=invoice.id,
                    commit=False
                )
                document_id = document.id

            self.db.commit()
            logger.info(
                f"Factura {invoice_number} emitida en caja {register.code} "
                f"(total {total_amount}, pendiente {pending_amount})"
            )
            return InvoiceCreated(
                id=invoice.id,
                invoice_number=invoice_number,
                pending_amount=pending_amount,
                cxc_document_id=document_id
            )
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error emitiendo factura: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def cancel_invoice(self, invoice_id: int) -> InvoiceCancelResult:
        """Anular: revierte inventario, marca ANULADA y anula su documento CxC."""
        invoice = self.get_invoice_model(invoice_id)
        if invoice.status == InvoiceStatus.ANULADA:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="La factura ya está anulada"
            )
        try:
            result = InventoryService(self.db).reverse_invoice_movements(invoice.invoice_number)
            invoice.status = InvoiceStatus.ANULADA
            invoice.cancelled_at = utcnow()
            CustomerDocumentService(self.db).cancel_invoice_document(invoice.id)
            self.db.commit()
            logger.info(f"Factura {invoice.invoice_number} anulada")
            return InvoiceCancelResult(
                id=invoice.id,
                invoice_number=invoice.invoice_number,
                status=invoice.status,
                cancelled_at=invoice.cancelled_at,
                reversed_lines=result["reversed"]
            )
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error anulando la factura {invoice_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def list_invoices(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        q: Optional[str] = None,
        table_code: Optional[str] = None,
        waiter_code: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> InvoiceList:
        page = max(1, page or 1)
        page_size = max(1, min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE))

        query = self.db.query(Invoice)
        start, end = date_bounds(date_from, date_to)
        if start:
            query = query.filter(Invoice.invoice_date >= start)
        if end:
            query = query.filter(Invoice.invoice_date <= end)
        if q and q.strip():
            term = f"%{q.strip()}%"
            query = query.filter(or_(
                Invoice.invoice_number.ilike(term),
                Invoice.customer_name.ilike(term),
                Invoice.notes.ilike(term)
            ))
        if normalize_code(table_code):
            query = query.filter(Invoice.table_code == normalize_code(table_code))
        if normalize_code(waiter_code):
            query = query.filter(Invoice.waiter_code == normalize_code(waiter_code))

        total = query.count()
        invoices = query.order_by(desc(Invoice.invoice_date), desc(Invoice.id)).offset(
            (page - 1) * page_size
        ).limit(page_size).all()
        return InvoiceList(
            items=[InvoiceListItem.model_validate(invoice) for invoice in invoices],
            total=total,
            page=page,
            page_size=page_size
        )
