"""
Servicios de cajas

- CashRegisterService: catálogo de cajas, consecutivo de facturas y
  asignaciones por usuario
- CashSessionService: aperturas, cierres con arqueo por método de pago y
  reporte de cierre
"""
from typing import List, Optional, Dict, Tuple
from decimal import Decimal
from datetime import datetime
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func, or_
from fastapi import HTTPException, status
import logging

from backoffice.core.config import settings
from backoffice.common.utils import utcnow, round_money, to_decimal
from backoffice.common.validators import normalize_code, clean_text
from backoffice.modules.catalog.service import WarehouseService
from backoffice.modules.staff.service import StaffService
from backoffice.modules.sequences.models import SequenceScope
from backoffice.modules.sequences.service import SequenceService
from backoffice.modules.invoices.models import Invoice, InvoicePayment, InvoiceStatus
from backoffice.modules.cash_registers.models import (
    CashRegister, CashRegisterUser, CashRegisterSession, CashRegisterSessionPayment, SessionStatus
)
from backoffice.modules.cash_registers.schemas import (
    CashRegisterCreate, CashRegisterUpdate, CashRegisterOut, CashRegisterAssignmentOut,
    CashRegisterAssignmentGroup, Denomination, OpenSessionRequest, CloseSessionRequest,
    SessionOut, PaymentBreakdown, ClosureSummary
)

logger = logging.getLogger(__name__)

CASH_METHODS = ("CASH", "EFECTIVO")
DENOMINATION_TOLERANCE = Decimal("0.005")


def validate_denominations(denominations: List[Denomination], amount: Decimal, label: str, mismatch_detail: str) -> None:
    """Todas en moneda local y sumando el monto indicado."""
    currencies = {d.currency.strip().upper() for d in denominations}
    if currencies != {settings.LOCAL_CURRENCY_CODE}:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Las denominaciones de {label} deben ser en {settings.LOCAL_CURRENCY_CODE}"
        )
    total = sum((to_decimal(d.value) * d.qty for d in denominations), Decimal("0"))
    if abs(round_money(total) - round_money(amount)) >= DENOMINATION_TOLERANCE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=mismatch_detail
        )


def build_closure_summary(
    session: CashRegisterSession,
    assignment: CashRegisterAssignmentOut,
    closing_user_id: Optional[int],
    closing_amount: Optional[Decimal],
    closing_at: Optional[datetime],
    closing_notes: Optional[str],
    expected: Dict[str, Tuple[Decimal, int]],
    reported: Dict[str, Tuple[Decimal, int]],
    total_invoices: int
) -> ClosureSummary:
    """
    Cruza lo esperado (facturas de la sesión) con lo reportado por el cajero.

    diferencia = reportado - esperado; transacciones = máximo de ambos.
    """
    breakdown = []
    for method in sorted(set(expected) | set(reported)):
        expected_amount, expected_count = expected.get(method, (Decimal("0"), 0))
        reported_amount, reported_count = reported.get(method, (Decimal("0"), 0))
        breakdown.append(PaymentBreakdown(
            method=method,
            expected_amount=round_money(expected_amount),
            reported_amount=round_money(reported_amount),
            difference_amount=round_money(reported_amount - expected_amount),
            transaction_count=max(expected_count, reported_count)
        ))

    expected_total = sum((row.expected_amount for row in breakdown), Decimal("0"))
    reported_total = sum((row.reported_amount for row in breakdown), Decimal("0"))
    return ClosureSummary(
        session_id=session.id,
        cash_register=assignment,
        opened_by_admin_id=session.admin_user_id,
        opening_amount=round_money(session.opening_amount),
        opening_at=session.opening_at,
        closing_by_admin_id=closing_user_id,
        closing_amount=round_money(closing_amount) if closing_amount is not None else None,
        closing_at=closing_at,
        closing_notes=closing_notes,
        expected_total_amount=round_money(expected_total),
        reported_total_amount=round_money(reported_total),
        difference_total_amount=round_money(reported_total - expected_total),
        total_invoices=total_invoices,
        payments=breakdown
    )


def to_assignment(register: CashRegister, is_default: bool = False) -> CashRegisterAssignmentOut:
    return CashRegisterAssignmentOut(
        cash_register_id=register.id,
        cash_register_code=register.code,
        cash_register_name=register.name,
        allow_manual_warehouse_override=register.allow_manual_warehouse_override,
        warehouse_id=register.warehouse_id,
        warehouse_code=register.warehouse.code,
        warehouse_name=register.warehouse.name,
        is_default=is_default
    )


class CashRegisterService:
    """Catálogo de cajas y asignaciones de usuarios."""

    def __init__(self, db: Session):
        self.db = db
        self.warehouses = WarehouseService(db)

    def _query(self):
        return self.db.query(CashRegister).options(
            joinedload(CashRegister.warehouse),
            joinedload(CashRegister.invoice_sequence)
        )

    def list_cash_registers(self, include_inactive: bool = False) -> List[CashRegisterOut]:
        query = self._query()
        if not include_inactive:
            query = query.filter(CashRegister.is_active == True)
        return [self.to_output(register) for register in query.order_by(CashRegister.code).all()]

    def get_by_code(self, code: Optional[str]) -> Optional[CashRegister]:
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self._query().filter(CashRegister.code == normalized).first()

    def get_by_code_or_404(self, code: Optional[str]) -> CashRegister:
        register = self.get_by_code(code)
        if not register:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Caja no encontrada"
            )
        return register

    def get_active_register(self, code: str) -> CashRegister:
        register = self.get_by_code(code)
        if not register or not register.is_active:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"La caja {normalize_code(code)} no existe o está inactiva"
            )
        return register

    def _resolve_warehouse(self, code: str):
        warehouse = self.warehouses.get_by_code(code)
        if not warehouse or not warehouse.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"El almacén {normalize_code(code)} no existe o está inactivo"
            )
        return warehouse

    def create_cash_register(self, data: CashRegisterCreate) -> CashRegisterOut:
        code = normalize_code(data.code)
        if self.get_by_code(code):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya existe una caja con ese código"
            )
        warehouse = self._resolve_warehouse(data.warehouse_code)
        register = CashRegister(
            code=code,
            name=data.name.strip(),
            warehouse_id=warehouse.id,
            allow_manual_warehouse_override=data.allow_manual_warehouse_override,
            notes=clean_text(data.notes, 250)
        )
        self.db.add(register)
        self.db.commit()
        logger.info(f"Caja creada: {code} (almacén {warehouse.code})")
        return self.to_output(self.get_by_code_or_404(code))

    def update_cash_register(self, code: str, data: CashRegisterUpdate) -> CashRegisterOut:
        register = self.get_by_code_or_404(code)
        fields = data.model_dump(exclude_unset=True)
        if data.name is not None:
            register.name = data.name.strip()
        if data.warehouse_code is not None:
            register.warehouse_id = self._resolve_warehouse(data.warehouse_code).id
        if data.allow_manual_warehouse_override is not None:
            register.allow_manual_warehouse_override = data.allow_manual_warehouse_override
        if data.is_active is True:
            register.activate()
        elif data.is_active is False:
            register.deactivate()
        if "notes" in fields:
            register.notes = clean_text(data.notes, 250)
        self.db.commit()
        self.db.expire(register)
        return self.to_output(self.get_by_code_or_404(register.code))

    def set_invoice_sequence(self, code: str, sequence_code: Optional[str]) -> CashRegisterOut:
        """Asigna (o quita) el consecutivo de facturas de la caja."""
        register = self.get_by_code_or_404(code)
        if not normalize_code(sequence_code):
            register.invoice_sequence_definition_id = None
        else:
            definition = SequenceService(self.db).get_by_code_or_404(sequence_code)
            if definition.scope != SequenceScope.INVOICE:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="El consecutivo seleccionado no es de facturas"
                )
            register.invoice_sequence_definition_id = definition.id
        self.db.commit()
        self.db.expire(register)
        return self.to_output(self.get_by_code_or_404(register.code))

    # Assignments
    def _user_assignments(self, admin_user_id: int) -> List[CashRegisterUser]:
        return self.db.query(CashRegisterUser).options(
            joinedload(CashRegisterUser.cash_register).joinedload(CashRegister.warehouse)
        ).filter(CashRegisterUser.admin_user_id == admin_user_id).order_by(CashRegisterUser.id).all()

    def list_assignments(self, admin_user_ids: Optional[List[int]] = None) -> List[CashRegisterAssignmentGroup]:
        query = self.db.query(CashRegisterUser).options(
            joinedload(CashRegisterUser.cash_register).joinedload(CashRegister.warehouse)
        )
        if admin_user_ids:
            query = query.filter(CashRegisterUser.admin_user_id.in_(admin_user_ids))
        groups: Dict[int, CashRegisterAssignmentGroup] = {}
        for row in query.order_by(CashRegisterUser.admin_user_id, CashRegisterUser.id).all():
            group = groups.setdefault(row.admin_user_id, CashRegisterAssignmentGroup(admin_user_id=row.admin_user_id))
            group.assignments.append(to_assignment(row.cash_register, row.is_default))
            if row.is_default:
                group.default_cash_register_id = row.cash_register_id
        return list(groups.values())

    def list_registers_for_user(self, admin_user_id: int) -> List[CashRegisterAssignmentOut]:
        return [
            to_assignment(row.cash_register, row.is_default)
            for row in self._user_assignments(admin_user_id)
            if row.cash_register.is_active
        ]

    def _set_default_row(self, rows: List[CashRegisterUser], target: CashRegisterUser) -> None:
        for row in rows:
            row.is_default = row.id == target.id

    def assign_cash_register(self, admin_user_id: int, cash_register_code: str, make_default: bool = False) -> CashRegisterAssignmentGroup:
        StaffService(self.db).get_admin_user(admin_user_id)
        register = self.get_active_register(cash_register_code)
        rows = self._user_assignments(admin_user_id)
        target = next((row for row in rows if row.cash_register_id == register.id), None)
        if target is None:
            target = CashRegisterUser(cash_register_id=register.id, admin_user_id=admin_user_id, is_default=False)
            self.db.add(target)
            self.db.flush()
            rows.append(target)
        if make_default or not any(row.is_default for row in rows):
            self._set_default_row(rows, target)
        self.db.commit()
        logger.info(f"Caja {register.code} asignada al usuario {admin_user_id}")
        return self._group_for(admin_user_id)

    def unassign_cash_register(self, admin_user_id: int, cash_register_code: str) -> CashRegisterAssignmentGroup:
        register = self.get_by_code_or_404(cash_register_code)
        rows = self._user_assignments(admin_user_id)
        target = next((row for row in rows if row.cash_register_id == register.id), None)
        if target is not None:
            rows.remove(target)
            self.db.delete(target)
            if target.is_default and rows:
                self._set_default_row(rows, rows[0])
            self.db.commit()
        return self._group_for(admin_user_id)

    def set_default_cash_register(self, admin_user_id: int, cash_register_code: str) -> CashRegisterAssignmentGroup:
        rows = self._user_assignments(admin_user_id)
        if not rows:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="El usuario no tiene cajas asignadas"
            )
        code = normalize_code(cash_register_code)
        target = next((row for row in rows if row.cash_register.code == code), None)
        if target is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="La caja no está asignada al usuario"
            )
        self._set_default_row(rows, target)
        self.db.commit()
        return self._group_for(admin_user_id)

    def _group_for(self, admin_user_id: int) -> CashRegisterAssignmentGroup:
        groups = self.list_assignments([admin_user_id])
        return groups[0] if groups else CashRegisterAssignmentGroup(admin_user_id=admin_user_id)

    def is_assigned(self, admin_user_id: int, cash_register_id: int) -> bool:
        return self.db.query(CashRegisterUser.id).filter(
            CashRegisterUser.admin_user_id == admin_user_id,
            CashRegisterUser.cash_register_id == cash_register_id
        ).first() is not None

    def to_output(self, register: CashRegister) -> CashRegisterOut:
        return CashRegisterOut(
            id=register.id,
            code=register.code,
            name=register.name,
            warehouse_id=register.warehouse_id,
            warehouse_code=register.warehouse.code,
            warehouse_name=register.warehouse.name,
            allow_manual_warehouse_override=register.allow_manual_warehouse_override,
            is_active=register.is_active,
            notes=register.notes,
            invoice_sequence_code=register.invoice_sequence.code if register.invoice_sequence else None,
            created_at=register.created_at,
            updated_at=register.updated_at
        )


class CashSessionService:
    """Aperturas y cierres de caja."""

    def __init__(self, db: Session):
        self.db = db
        self.registers = CashRegisterService(db)

    def _query(self):
        return self.db.query(CashRegisterSession).options(
            joinedload(CashRegisterSession.cash_register).joinedload(CashRegister.warehouse),
            joinedload(CashRegisterSession.payments)
        )

    def get_session(self, session_id: int) -> Optional[CashRegisterSession]:
        return self._query().filter(CashRegisterSession.id == session_id).first()

    def get_session_or_404(self, session_id: int) -> CashRegisterSession:
        session = self.get_session(session_id)
        if not session:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Sesión de caja no encontrada"
            )
        return session

    def get_active_session(self, admin_user_id: int) -> Optional[CashRegisterSession]:
        return self._query().filter(
            CashRegisterSession.admin_user_id == admin_user_id,
            CashRegisterSession.status == SessionStatus.OPEN
        ).order_by(CashRegisterSession.opening_at.desc()).first()

    def list_recent_sessions(self, admin_user_id: int, limit: int = 10) -> List[CashRegisterSession]:
        limit = max(1, min(limit or 10, 50))
        return self._query().filter(
            CashRegisterSession.admin_user_id == admin_user_id
        ).order_by(CashRegisterSession.opening_at.desc(), CashRegisterSession.id.desc()).limit(limit).all()

    def list_active_sessions(self) -> List[CashRegisterSession]:
        return self._query().filter(
            CashRegisterSession.status == SessionStatus.OPEN
        ).order_by(CashRegisterSession.opening_at).all()

    def open_session(self, operator_id: int, data: OpenSessionRequest) -> CashRegisterSession:
        """
        Abrir caja.

        - Monto >= 0; con monto > 0 se exigen denominaciones que lo sumen
        - Una sola apertura OPEN por usuario y por caja
        - El usuario debe tener asignada la caja salvo allow_unassigned
        """
        admin_user_id = data.admin_user_id or operator_id
        opening_amount = to_decimal(data.opening_amount)
        if opening_amount < 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El monto de apertura debe ser positivo o cero"
            )
        denominations = list(data.opening_denominations or [])
        if opening_amount > 0 and not denominations:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Debes capturar denominaciones de apertura cuando el monto es mayor a cero"
            )
        if denominations:
            validate_denominations(
                denominations, opening_amount, "apertura",
                "La suma de denominaciones no coincide con el monto de apertura"
            )

        StaffService(self.db).get_admin_user(admin_user_id)
        register = self.registers.get_active_register(data.cash_register_code)
        if not data.allow_unassigned and not self.registers.is_assigned(admin_user_id, register.id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"No tienes permisos para operar la caja {register.code}"
            )

        has_open = self.db.query(CashRegisterSession.id).filter(
            CashRegisterSession.status == SessionStatus.OPEN,
            or_(
                CashRegisterSession.admin_user_id == admin_user_id,
                CashRegisterSession.cash_register_id == register.id
            )
        ).first()
        if has_open:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya existe una apertura activa para el usuario o la caja seleccionada"
            )

        session = CashRegisterSession(
            cash_register_id=register.id,
            admin_user_id=admin_user_id,
            status=SessionStatus.OPEN,
            opening_amount=round_money(opening_amount),
            opening_at=utcnow(),
            opening_notes=clean_text(data.opening_notes, 400),
            opening_denominations=[d.model_dump(mode="json") for d in denominations] or None
        )
        self.db.add(session)
        self.db.commit()
        logger.info(f"Caja {register.code} abierta por el usuario {admin_user_id} (sesión {session.id})")
        return self.get_session_or_404(session.id)

    def _expected_payments(self, session_id: int) -> Tuple[Dict[str, Tuple[Decimal, int]], int]:
        rows = self.db.query(
            InvoicePayment.payment_method,
            func.coalesce(func.sum(InvoicePayment.amount), 0),
            func.count(InvoicePayment.id)
        ).join(Invoice, InvoicePayment.invoice_id == Invoice.id).filter(
            Invoice.cash_register_session_id == session_id,
            Invoice.status != InvoiceStatus.ANULADA
        ).group_by(InvoicePayment.payment_method).all()
        expected = {
            method.value: (round_money(amount), int(count))
            for method, amount, count in rows
        }
        total_invoices = self.db.query(func.count(Invoice.id)).filter(
            Invoice.cash_register_session_id == session_id,
            Invoice.status != InvoiceStatus.ANULADA
        ).scalar() or 0
        return expected, int(total_invoices)

    def close_session(self, operator_id: int, data: CloseSessionRequest) -> ClosureSummary:
        """
        Cerrar caja con arqueo.

        Lo esperado sale de los pagos de las facturas de la sesión (sin
        anuladas); lo reportado, del conteo del cajero.
        """
        closing_amount = to_decimal(data.closing_amount)
        if closing_amount < 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El monto de cierre debe ser positivo o cero"
            )

        reported: Dict[str, Tuple[Decimal, int]] = {}
        for payment in data.payments:
            amount = to_decimal(payment.reported_amount)
            if amount < 0:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Los montos reportados deben ser válidos y no negativos"
                )
            method = payment.method.strip().upper()
            tx_count = max(0, int(payment.transaction_count or 0))
            base_amount, base_count = reported.get(method, (Decimal("0"), 0))
            reported[method] = (round_money(base_amount + amount), base_count + tx_count)

        cash_reported = sum((reported[m][0] for m in CASH_METHODS if m in reported), Decimal("0"))
        if cash_reported > 0:
            if not data.closing_denominations:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Debes capturar denominaciones de cierre para efectivo"
                )
            validate_denominations(
                data.closing_denominations, cash_reported, "cierre",
                "Las denominaciones de cierre no cuadran con el efectivo reportado"
            )

        if data.session_id is not None:
            session = self.get_session(data.session_id)
        else:
            session = self.get_active_session(operator_id)
        if not session:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No se encontró una apertura de caja activa"
            )
        if session.status != SessionStatus.OPEN:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="La sesión indicada ya fue cerrada"
            )
        if session.admin_user_id != operator_id and not data.allow_different_user:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Solo el usuario que abrió la caja puede cerrarla"
            )

        try:
            expected, total_invoices = self._expected_payments(session.id)
            closing_at = utcnow()
            closing_notes = clean_text(data.closing_notes, 400)
            summary = build_closure_summary(
                session,
                to_assignment(session.cash_register),
                closing_user_id=operator_id,
                closing_amount=closing_amount,
                closing_at=closing_at,
                closing_notes=closing_notes,
                expected=expected,
                reported=reported,
                total_invoices=total_invoices
            )

            session.status = SessionStatus.CLOSED
            session.closing_amount = summary.closing_amount
            session.closing_at = closing_at
            session.closing_notes = closing_notes
            session.closing_user_id = operator_id
            session.closing_denominations = (
                [d.model_dump(mode="json") for d in data.closing_denominations]
                if data.closing_denominations else None
            )
            session.totals_snapshot = summary.model_dump(mode="json")
            session.payments.clear()
            self.db.flush()
            for row in summary.payments:
                session.payments.append(CashRegisterSessionPayment(
                    payment_method=row.method,
                    expected_amount=row.expected_amount,
                    reported_amount=row.reported_amount,
                    difference_amount=row.difference_amount,
                    transaction_count=row.transaction_count
                ))
            self.db.commit()
            logger.info(
                f"Caja {session.cash_register.code} cerrada (sesión {session.id}); "
                f"diferencia {summary.difference_total_amount}"
            )
            return summary
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error cerrando la sesión de caja {session.id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def get_closure_report(self, session_id: int) -> ClosureSummary:
        """Reporte de cierre guardado; para una sesión abierta, lo esperado a la fecha."""
        session = self.get_session_or_404(session_id)
        if session.totals_snapshot:
            return ClosureSummary.model_validate(session.totals_snapshot)
        expected, total_invoices = self._expected_payments(session.id)
        return build_closure_summary(
            session,
            to_assignment(session.cash_register),
            closing_user_id=session.closing_user_id,
            closing_amount=session.closing_amount,
            closing_at=session.closing_at,
            closing_notes=session.closing_notes,
            expected=expected,
            reported={},
            total_invoices=total_invoices
        )

    def record_invoice_sequence_usage(self, session: CashRegisterSession, invoice_number: str) -> None:
        """Extiende el rango de folios emitidos en la sesión. No hace commit."""
        label = (invoice_number or "").strip()
        if not label:
            return
        if not session.invoice_sequence_start:
            session.invoice_sequence_start = label
        session.invoice_sequence_end = label

    def to_output(self, session: CashRegisterSession) -> SessionOut:
        return SessionOut(
            id=session.id,
            status=session.status,
            admin_user_id=session.admin_user_id,
            cash_register=to_assignment(session.cash_register),
            opening_amount=session.opening_amount,
            opening_at=session.opening_at,
            opening_notes=session.opening_notes,
            opening_denominations=session.opening_denominations,
            closing_amount=session.closing_amount,
            closing_at=session.closing_at,
            closing_notes=session.closing_notes,
            closing_user_id=session.closing_user_id,
            closing_denominations=session.closing_denominations,
            invoice_sequence_start=session.invoice_sequence_start,
            invoice_sequence_end=session.invoice_sequence_end
        )
