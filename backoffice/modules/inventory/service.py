"""
Motor de movimientos de inventario

Cada operación de escritura crea un documento (InventoryTransaction) con sus
líneas capturadas (entries) y los movimientos efectivos sobre existencias:

- Compras: entrada (IN) al almacén indicado
- Consumos: salida (OUT) del almacén indicado
- Traspasos: salida del origen y entrada al destino en el mismo documento
- Facturación: un consumo por almacén involucrado en la factura
- Anulación de factura: ajuste de entrada que devuelve lo consumido

Los kits nunca tienen existencias propias; se expanden a sus componentes y
cada movimiento conserva el kit de origen en source_kit_article_id.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Dict, Tuple, Union, Iterable
from sqlalchemy.orm import Session, selectinload, joinedload
from sqlalchemy import and_, or_, func, case
from fastapi import HTTPException, status
import logging

from backoffice.core.config import settings
from backoffice.common.utils import (
    EPSILON, round_money, round_quantity, snap_to_zero, to_decimal,
    resolve_occurred_at, start_of_business_day, end_of_business_day
)
from backoffice.common.validators import normalize_code, clean_text
from backoffice.modules.catalog.models import Article, Warehouse, ArticleWarehouse, ArticleType
from backoffice.modules.catalog.service import ArticleService, WarehouseService
from backoffice.modules.sequences.service import SequenceService
from backoffice.modules.inventory.models import (
    WarehouseStock, InventoryTransaction, InventoryTransactionEntry, InventoryMovement,
    TransactionType, TransactionStatus, MovementDirection, InventoryUnit
)
from backoffice.modules.inventory.schemas import (
    PurchaseCreate, ConsumptionCreate, TransferCreate, InvoiceMovementLine,
    TransactionResult, TransferResult, KardexRow, StockSummaryRow, PurchaseListItem,
    ConsumptionRow, TransferListItem, DocumentMovementOut, DocumentEntryOut,
    InventoryDocumentOut, TransactionHeaderOut
)

logger = logging.getLogger(__name__)

PURCHASE_STATUSES = (TransactionStatus.PENDIENTE, TransactionStatus.PARCIAL, TransactionStatus.PAGADA)
INVOICE_AUTHORIZER = "Facturación POS"


@dataclass
class ComponentMovement:
    article: Article
    quantity_retail: Decimal


@dataclass
class MovementComputation:
    article: Article
    direction: MovementDirection
    unit: InventoryUnit
    quantity_entered: Decimal
    quantity_retail: Decimal
    quantity_storage: Decimal
    kit_multiplier: Optional[Decimal] = None
    components: List[ComponentMovement] = field(default_factory=list)

    @property
    def source_kit_id(self) -> Optional[int]:
        return self.article.id if self.article.article_type == ArticleType.KIT else None


def safe_factor(value) -> Decimal:
    factor = to_decimal(value)
    return factor if factor > 0 else Decimal("1")


def date_bounds(date_from: Optional[date], date_to: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Convierte un rango de días de negocio a límites UTC."""
    start = start_of_business_day(date_from) if date_from else None
    end = end_of_business_day(date_to) if date_to else None
    return start, end


def normalize_codes(values: Optional[Iterable[str]]) -> List[str]:
    result = []
    for value in values or []:
        code = normalize_code(value)
        if code and code not in result:
            result.append(code)
    return result


class InventoryService:
    """Servicio del motor de inventario."""

    def __init__(self, db: Session):
        self.db = db
        self.articles = ArticleService(db)
        self.warehouses = WarehouseService(db)
        self.sequences = SequenceService(db)

    # ------------------------------------------------------------------
    # Cálculo de movimientos
    # ------------------------------------------------------------------
    def compute_movement(
        self,
        article_code: str,
        quantity,
        unit: InventoryUnit = InventoryUnit.RETAIL,
        direction: MovementDirection = MovementDirection.IN
    ) -> MovementComputation:
        """
        Convierte la cantidad capturada a unidades de detalle y expande kits.

        - STORAGE: detalle = cantidad * factor
        - RETAIL: almacenamiento = cantidad / factor
        - KIT: multiplicador = kits completos; cada componente recibe
          multiplicador * cantidad del componente
        """
        code = normalize_code(article_code)
        article = self.articles.get_by_code(code)
        if not article:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Artículo no encontrado: {code}"
            )
        factor = to_decimal(article.conversion_factor)
        if not factor > 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Factor de conversión inválido para {code}"
            )
        qty = to_decimal(quantity)
        if not qty > 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Cantidad inválida para {code}"
            )

        unit = unit or InventoryUnit.RETAIL
        if unit == InventoryUnit.STORAGE:
            quantity_retail = qty * factor
            quantity_storage = qty
        else:
            quantity_retail = qty
            quantity_storage = qty / factor

        computation = MovementComputation(
            article=article,
            direction=direction,
            unit=unit,
            quantity_entered=qty,
            quantity_retail=round_quantity(quantity_retail),
            quantity_storage=round_quantity(quantity_storage)
        )

        if article.article_type == ArticleType.KIT:
            if not article.kit_components:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"El kit {code} no tiene componentes configurados"
                )
            multiplier = qty if unit == InventoryUnit.STORAGE else quantity_retail / factor
            computation.kit_multiplier = round_quantity(multiplier)
            for component in article.kit_components:
                if component.component is None:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"Componente {component.component_article_id} no encontrado"
                    )
                computation.components.append(ComponentMovement(
                    article=component.component,
                    quantity_retail=round_quantity(multiplier * to_decimal(component.component_qty_retail))
                ))
        else:
            computation.components.append(ComponentMovement(
                article=article,
                quantity_retail=computation.quantity_retail
            ))
        return computation

    # ------------------------------------------------------------------
    # Existencias
    # ------------------------------------------------------------------
    def apply_stock_delta(self, article: Article, warehouse: Warehouse, delta_retail) -> WarehouseStock:
        stock = self.db.query(WarehouseStock).filter(
            WarehouseStock.article_id == article.id,
            WarehouseStock.warehouse_id == warehouse.id
        ).first()

        current = to_decimal(stock.quantity_retail) if stock else Decimal("0")
        next_retail = current + to_decimal(delta_retail)
        if next_retail < -EPSILON:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Existencias insuficientes para {article.article_code} en la bodega {warehouse.code}."
            )

        retail = snap_to_zero(max(next_retail, Decimal("0")))
        storage = snap_to_zero(retail / safe_factor(article.conversion_factor))

        if stock is None:
            stock = WarehouseStock(article_id=article.id, warehouse_id=warehouse.id)
            self.db.add(stock)
        stock.quantity_retail = round_quantity(retail)
        stock.quantity_storage = round_quantity(storage)
        self.db.flush()
        return stock

    def ensure_article_warehouse(self, article: Article, warehouse: Warehouse) -> None:
        exists = self.db.query(ArticleWarehouse.id).filter(
            ArticleWarehouse.article_id == article.id,
            ArticleWarehouse.warehouse_id == warehouse.id
        ).first()
        if not exists:
            self.db.add(ArticleWarehouse(
                article_id=article.id,
                warehouse_id=warehouse.id,
                is_primary=article.default_warehouse_id == warehouse.id
            ))
            self.db.flush()

    def _post_entry(
        self,
        transaction: InventoryTransaction,
        computation: MovementComputation,
        warehouse: Warehouse,
        direction: MovementDirection,
        cost_per_unit: Optional[Decimal] = None,
        subtotal: Optional[Decimal] = None,
        notes: Optional[str] = None
    ) -> InventoryTransactionEntry:
        """Registra una línea, sus movimientos por componente y el efecto en existencias."""
        entry = InventoryTransactionEntry(
            transaction_id=transaction.id,
            article_id=computation.article.id,
            quantity_entered=round_quantity(computation.quantity_entered),
            entered_unit=computation.unit,
            direction=direction,
            unit_conversion_factor=computation.article.conversion_factor,
            kit_multiplier=computation.kit_multiplier,
            cost_per_unit=cost_per_unit,
            subtotal=subtotal,
            notes=notes
        )
        self.db.add(entry)
        self.db.flush()

        sign = Decimal("1") if direction == MovementDirection.IN else Decimal("-1")
        for component in computation.components:
            self.ensure_article_warehouse(component.article, warehouse)
            self.db.add(InventoryMovement(
                transaction_id=transaction.id,
                entry_id=entry.id,
                article_id=component.article.id,
                direction=direction,
                quantity_retail=component.quantity_retail,
                warehouse_id=warehouse.id,
                source_kit_article_id=computation.source_kit_id
            ))
            self.apply_stock_delta(component.article, warehouse, sign * component.quantity_retail)
        return entry

    def _create_transaction(self, transaction_type: TransactionType, warehouse: Warehouse, **fields) -> InventoryTransaction:
        transaction = InventoryTransaction(
            transaction_code=self.sequences.generate_inventory_code(transaction_type.value),
            transaction_type=transaction_type,
            warehouse_id=warehouse.id,
            **fields
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction

    # ------------------------------------------------------------------
    # Registro de documentos
    # ------------------------------------------------------------------
    def register_purchase(self, data: PurchaseCreate) -> TransactionResult:
        """Registrar una compra: entrada de mercadería con costo por línea."""
        if not data.lines:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Debes incluir al menos una línea en la compra"
            )
        purchase_status = data.status or TransactionStatus.PENDIENTE
        if purchase_status not in PURCHASE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Estado de compra inválido"
            )

        try:
            warehouse = self.warehouses.get_by_code_or_404(data.warehouse_code)
            transaction = self._create_transaction(
                TransactionType.PURCHASE,
                warehouse,
                reference=clean_text(data.document_number, 120),
                counterparty_name=clean_text(data.supplier_name, 200),
                status=purchase_status,
                notes=clean_text(data.notes),
                occurred_at=resolve_occurred_at(data.occurred_at),
                created_by=clean_text(data.created_by, 120),
                total_amount=Decimal("0")
            )

            total = Decimal("0")
            for line in data.lines:
                computation = self.compute_movement(line.article_code, line.quantity, line.unit, MovementDirection.IN)
                cost = to_decimal(line.cost_per_unit)
                subtotal = round_money(cost * computation.quantity_entered)
                total += subtotal
                self._post_entry(
                    transaction, computation, warehouse, MovementDirection.IN,
                    cost_per_unit=cost, subtotal=subtotal, notes=clean_text(line.notes)
                )

            transaction.total_amount = round_money(total)
            self.db.commit()
            logger.info(f"Compra registrada: {transaction.transaction_code} ({warehouse.code}) total {transaction.total_amount}")
            return TransactionResult(
                id=transaction.id,
                transaction_code=transaction.transaction_code,
                total_amount=transaction.total_amount
            )
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error registrando compra: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def register_consumption(self, data: ConsumptionCreate) -> TransactionResult:
        """Registrar un consumo interno (merma, cortesía, producción)."""
        if not data.lines:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Debes incluir al menos una línea en el consumo"
            )
        authorized_by = clean_text(data.authorized_by, 120)
        if not authorized_by:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Debes indicar quién autoriza el consumo"
            )

        try:
            warehouse = self.warehouses.get_by_code_or_404(data.warehouse_code)
            transaction = self._create_transaction(
                TransactionType.CONSUMPTION,
                warehouse,
                reference=clean_text(data.reason, 120),
                counterparty_name=clean_text(data.area, 200),
                status=TransactionStatus.CONFIRMADO,
                notes=clean_text(data.notes),
                occurred_at=resolve_occurred_at(data.occurred_at),
                authorized_by=authorized_by,
                created_by=clean_text(data.created_by, 120),
                total_amount=Decimal("0")
            )
            for line in data.lines:
                computation = self.compute_movement(line.article_code, line.quantity, line.unit, MovementDirection.OUT)
                self._post_entry(transaction, computation, warehouse, MovementDirection.OUT, notes=clean_text(line.notes))

            self.db.commit()
            logger.info(f"Consumo registrado: {transaction.transaction_code} ({warehouse.code})")
            return TransactionResult(id=transaction.id, transaction_code=transaction.transaction_code)
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error registrando consumo: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def register_transfer(self, data: TransferCreate) -> TransferResult:
        """Traspaso entre almacenes: salida del origen y entrada al destino."""
        if not data.lines:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Debes incluir al menos una línea en el traspaso"
            )
        from_code = normalize_code(data.from_warehouse_code)
        to_code = normalize_code(data.to_warehouse_code)
        if not from_code or not to_code:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Selecciona almacenes de origen y destino"
            )
        if from_code == to_code:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El traspaso requiere almacenes distintos"
            )

        try:
            source = self.warehouses.get_by_code(from_code)
            if not source:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"Almacén origen no encontrado: {from_code}"
                )
            destination = self.warehouses.get_by_code(to_code)
            if not destination:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"Almacén destino no encontrado: {to_code}"
                )

            notes_parts = [clean_text(data.notes)]
            requested_by = clean_text(data.requested_by, 120)
            if requested_by:
                notes_parts.append(f"Solicitado por: {requested_by}")
            occurred_at = resolve_occurred_at(data.occurred_at)

            transaction = self._create_transaction(
                TransactionType.TRANSFER,
                source,
                reference=clean_text(data.reference, 120),
                counterparty_name=destination.name,
                status=TransactionStatus.CONFIRMADO,
                notes=" | ".join(part for part in notes_parts if part) or None,
                occurred_at=occurred_at,
                authorized_by=clean_text(data.authorized_by, 120),
                total_amount=Decimal("0")
            )
            for line in data.lines:
                computation = self.compute_movement(line.article_code, line.quantity, line.unit, MovementDirection.OUT)
                notes = clean_text(line.notes)
                self._post_entry(transaction, computation, source, MovementDirection.OUT, notes=notes)
                computation.direction = MovementDirection.IN
                self._post_entry(transaction, computation, destination, MovementDirection.IN, notes=notes)

            self.db.commit()
            logger.info(f"Traspaso registrado: {transaction.transaction_code} {source.code} -> {destination.code}")
            return TransferResult(
                id=transaction.id,
                transaction_code=transaction.transaction_code,
                occurred_at=occurred_at,
                from_warehouse=source.code,
                to_warehouse=destination.code,
                lines=data.lines
            )
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error registrando traspaso: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def _resolve_sales_warehouse(self, article: Article, line_warehouse_code: Optional[str]) -> Warehouse:
        """
        Almacén de descarga de una línea facturada.

        Un código explícito debe existir; sin código se usa el almacén del
        artículo y luego DEFAULT_SALES_WAREHOUSE_CODE.
        """
        explicit = normalize_code(line_warehouse_code)
        if explicit:
            warehouse = self.warehouses.get_by_code(explicit)
            if not warehouse:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Almacén no encontrado: {explicit}"
                )
            return warehouse

        candidates = []
        if article.default_warehouse is not None:
            candidates.append(article.default_warehouse.code)
        candidates.append(settings.default_sales_warehouse_code)

        for code in candidates:
            if not code:
                continue
            warehouse = self.warehouses.get_by_code(code)
            if warehouse:
                return warehouse
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No se pudo determinar el almacén para el artículo {article.article_code}"
        )

    def register_invoice_movements(
        self,
        invoice_number: str,
        invoice_date: Optional[Union[date, datetime]],
        table_code: Optional[str],
        customer_name: Optional[str],
        lines: List[InvoiceMovementLine]
    ) -> List[InventoryTransaction]:
        """
        Descarga de inventario por una factura: un consumo por almacén.

        No hace commit; corre dentro de la transacción de la factura.
        """
        grouped: Dict[int, Tuple[Warehouse, List[Tuple[InvoiceMovementLine, Article]]]] = {}
        for line in lines:
            code = normalize_code(line.article_code)
            if not code or to_decimal(line.quantity) <= 0:
                continue
            article = self.articles.get_by_code(code)
            if not article:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Artículo no encontrado: {code}"
                )
            warehouse = self._resolve_sales_warehouse(article, line.warehouse_code)
            grouped.setdefault(warehouse.id, (warehouse, []))[1].append((line, article))

        table = clean_text(table_code)
        customer = clean_text(customer_name, 200)
        notes = " | ".join(part for part in [
            f"Mesa: {table}" if table else None,
            f"Cliente: {customer}" if customer else None
        ] if part) or None
        occurred_at = resolve_occurred_at(invoice_date)

        transactions = []
        for warehouse, warehouse_lines in grouped.values():
            transaction = self._create_transaction(
                TransactionType.CONSUMPTION,
                warehouse,
                reference=invoice_number,
                counterparty_name=customer or (f"Mesa {table}" if table else None),
                status=TransactionStatus.CONFIRMADO,
                notes=notes,
                occurred_at=occurred_at,
                authorized_by=INVOICE_AUTHORIZER,
                total_amount=Decimal("0")
            )
            for line, article in warehouse_lines:
                computation = self.compute_movement(article.article_code, line.quantity, line.unit, MovementDirection.OUT)
                self._post_entry(
                    transaction, computation, warehouse, MovementDirection.OUT,
                    notes=f"Factura {invoice_number}"
                )
            transactions.append(transaction)

        if transactions:
            logger.info(f"Factura {invoice_number}: {len(transactions)} consumo(s) de inventario")
        return transactions

    def reverse_invoice_movements(
        self,
        invoice_number: str,
        occurred_at: Optional[Union[date, datetime]] = None
    ) -> Dict[str, int]:
        """
        Devuelve a existencias lo consumido por una factura.

        Agrupa por almacén y artículo las salidas de los consumos cuya referencia
        es el número de factura. No hace commit.
        """
        reference = (invoice_number or "").strip()
        if not reference:
            return {"reversed": 0}

        movements = self.db.query(InventoryMovement).join(
            InventoryTransaction, InventoryMovement.transaction_id == InventoryTransaction.id
        ).options(
            joinedload(InventoryMovement.article),
            joinedload(InventoryMovement.warehouse)
        ).filter(
            InventoryMovement.direction == MovementDirection.OUT,
            InventoryTransaction.transaction_type == TransactionType.CONSUMPTION,
            InventoryTransaction.reference == reference
        ).order_by(InventoryMovement.id).all()
        if not movements:
            return {"reversed": 0}

        by_warehouse: Dict[int, Tuple[Warehouse, Dict[int, List]]] = {}
        for movement in movements:
            _, by_article = by_warehouse.setdefault(movement.warehouse_id, (movement.warehouse, {}))
            article_row = by_article.setdefault(movement.article_id, [movement.article, Decimal("0")])
            article_row[1] += to_decimal(movement.quantity_retail)

        reversed_count = 0
        when = resolve_occurred_at(occurred_at)
        for warehouse, by_article in by_warehouse.values():
            transaction = self._create_transaction(
                TransactionType.ADJUSTMENT,
                warehouse,
                reference=f"ANULACION {reference}",
                counterparty_name="Anulación de factura",
                status=TransactionStatus.CONFIRMADO,
                notes=f"Reverso de consumos registrados por la factura {reference}",
                occurred_at=when,
                authorized_by="Sistema",
                total_amount=Decimal("0")
            )
            for article, quantity_retail in by_article.values():
                computation = MovementComputation(
                    article=article,
                    direction=MovementDirection.IN,
                    unit=InventoryUnit.RETAIL,
                    quantity_entered=quantity_retail,
                    quantity_retail=quantity_retail,
                    quantity_storage=round_quantity(quantity_retail / safe_factor(article.conversion_factor)),
                    components=[ComponentMovement(article=article, quantity_retail=quantity_retail)]
                )
                self._post_entry(
                    transaction, computation, warehouse, MovementDirection.IN,
                    notes=f"Reverso factura {reference}"
                )
                reversed_count += 1

        logger.info(f"Factura {reference}: {reversed_count} línea(s) de inventario revertidas")
        return {"reversed": reversed_count}

    # ------------------------------------------------------------------
    # Consultas
    # ------------------------------------------------------------------
    def list_kardex(
        self,
        article_codes: Optional[List[str]] = None,
        warehouse_codes: Optional[List[str]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None
    ) -> List[KardexRow]:
        """Movimientos con saldo acumulado por artículo y almacén."""
        articles = normalize_codes(article_codes)
        warehouses = normalize_codes(warehouse_codes)
        start, end = date_bounds(date_from, date_to)

        def apply_filters(query):
            query = query.join(
                InventoryTransaction, InventoryMovement.transaction_id == InventoryTransaction.id
            ).join(
                Article, InventoryMovement.article_id == Article.id
            ).join(
                Warehouse, InventoryMovement.warehouse_id == Warehouse.id
            )
            if articles:
                query = query.filter(Article.article_code.in_(articles))
            if warehouses:
                query = query.filter(Warehouse.code.in_(warehouses))
            return query

        balances: Dict[Tuple[int, int], Decimal] = {}
        if start:
            signed = case(
                (InventoryMovement.direction == MovementDirection.IN, InventoryMovement.quantity_retail),
                else_=-InventoryMovement.quantity_retail
            )
            opening = apply_filters(self.db.query(
                InventoryMovement.article_id,
                InventoryMovement.warehouse_id,
                func.sum(signed)
            )).filter(
                InventoryTransaction.occurred_at < start
            ).group_by(InventoryMovement.article_id, InventoryMovement.warehouse_id).all()
            for article_id, warehouse_id, total in opening:
                balances[(article_id, warehouse_id)] = to_decimal(total)

        query = apply_filters(self.db.query(InventoryMovement)).options(
            joinedload(InventoryMovement.transaction),
            joinedload(InventoryMovement.article).joinedload(Article.retail_unit),
            joinedload(InventoryMovement.article).joinedload(Article.storage_unit),
            joinedload(InventoryMovement.warehouse),
            joinedload(InventoryMovement.source_kit)
        )
        if start:
            query = query.filter(InventoryTransaction.occurred_at >= start)
        if end:
            query = query.filter(InventoryTransaction.occurred_at <= end)
        movements = query.order_by(InventoryTransaction.occurred_at, InventoryMovement.id).all()

        rows = []
        for movement in movements:
            key = (movement.article_id, movement.warehouse_id)
            quantity = to_decimal(movement.quantity_retail)
            sign = Decimal("1") if movement.direction == MovementDirection.IN else Decimal("-1")
            balance = balances.get(key, Decimal("0")) + sign * quantity
            balances[key] = balance
            factor = safe_factor(movement.article.conversion_factor)
            transaction = movement.transaction
            rows.append(KardexRow(
                id=movement.id,
                occurred_at=transaction.occurred_at,
                created_at=transaction.created_at,
                transaction_type=transaction.transaction_type,
                transaction_code=transaction.transaction_code,
                article_code=movement.article.article_code,
                article_name=movement.article.name,
                direction=movement.direction,
                quantity_retail=quantity,
                quantity_storage=round_quantity(quantity / factor),
                retail_unit=movement.article.retail_unit_name,
                storage_unit=movement.article.storage_unit_name,
                reference=transaction.reference,
                counterparty_name=transaction.counterparty_name,
                warehouse_code=movement.warehouse.code,
                warehouse_name=movement.warehouse.name,
                source_kit_code=movement.source_kit.article_code if movement.source_kit else None,
                balance_retail=round_quantity(balance),
                balance_storage=round_quantity(balance / factor)
            ))
        return rows

    def get_stock_summary(
        self,
        article_codes: Optional[List[str]] = None,
        search: Optional[str] = None,
        warehouse_codes: Optional[List[str]] = None
    ) -> List[StockSummaryRow]:
        articles = normalize_codes(article_codes)
        warehouses = normalize_codes(warehouse_codes)

        query = self.db.query(WarehouseStock).join(
            Article, WarehouseStock.article_id == Article.id
        ).join(
            Warehouse, WarehouseStock.warehouse_id == Warehouse.id
        ).options(
            joinedload(WarehouseStock.article).joinedload(Article.retail_unit),
            joinedload(WarehouseStock.article).joinedload(Article.storage_unit),
            joinedload(WarehouseStock.warehouse)
        )
        if articles:
            query = query.filter(Article.article_code.in_(articles))
        elif search and search.strip():
            term = f"%{search.strip().lower()}%"
            query = query.filter(or_(
                func.lower(Article.article_code).like(term),
                func.lower(Article.name).like(term)
            ))
        if warehouses:
            query = query.filter(Warehouse.code.in_(warehouses))

        stocks = query.order_by(Article.article_code, Warehouse.code).all()
        return [
            StockSummaryRow(
                article_code=stock.article.article_code,
                article_name=stock.article.name,
                warehouse_code=stock.warehouse.code,
                warehouse_name=stock.warehouse.name,
                available_retail=to_decimal(stock.quantity_retail),
                available_storage=to_decimal(stock.quantity_storage),
                retail_unit=stock.article.retail_unit_name,
                storage_unit=stock.article.storage_unit_name
            )
            for stock in stocks
        ]

    def list_transfers(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        article_code: Optional[str] = None,
        from_warehouse_code: Optional[str] = None,
        to_warehouse_code: Optional[str] = None
    ) -> List[TransferListItem]:
        start, end = date_bounds(date_from, date_to)
        query = self.db.query(InventoryTransaction).options(
            joinedload(InventoryTransaction.warehouse),
            selectinload(InventoryTransaction.entries),
            selectinload(InventoryTransaction.movements).joinedload(InventoryMovement.warehouse)
        ).filter(InventoryTransaction.transaction_type == TransactionType.TRANSFER)

        if start:
            query = query.filter(InventoryTransaction.occurred_at >= start)
        if end:
            query = query.filter(InventoryTransaction.occurred_at <= end)
        if normalize_code(article_code):
            query = query.filter(InventoryTransaction.movements.any(
                InventoryMovement.article.has(Article.article_code == normalize_code(article_code))
            ))
        if normalize_code(from_warehouse_code):
            query = query.filter(InventoryTransaction.warehouse.has(
                Warehouse.code == normalize_code(from_warehouse_code)
            ))
        if normalize_code(to_warehouse_code):
            query = query.filter(InventoryTransaction.movements.any(and_(
                InventoryMovement.direction == MovementDirection.IN,
                InventoryMovement.warehouse.has(Warehouse.code == normalize_code(to_warehouse_code))
            )))

        result = []
        for transaction in query.order_by(InventoryTransaction.occurred_at.desc(), InventoryTransaction.id.desc()).all():
            destination = next(
                (m.warehouse for m in transaction.movements if m.direction == MovementDirection.IN),
                None
            )
            result.append(TransferListItem(
                id=transaction.id,
                transaction_code=transaction.transaction_code,
                occurred_at=transaction.occurred_at,
                from_warehouse_code=transaction.warehouse.code,
                from_warehouse_name=transaction.warehouse.name,
                to_warehouse_code=destination.code if destination else "",
                to_warehouse_name=destination.name if destination else "",
                lines_count=sum(1 for e in transaction.entries if e.direction == MovementDirection.OUT),
                notes=transaction.notes,
                authorized_by=transaction.authorized_by
            ))
        return result

    def list_purchases(
        self,
        purchase_status: Optional[TransactionStatus] = None,
        supplier: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None
    ) -> List[PurchaseListItem]:
        start, end = date_bounds(date_from, date_to)
        query = self.db.query(InventoryTransaction).options(
            joinedload(InventoryTransaction.warehouse)
        ).filter(InventoryTransaction.transaction_type == TransactionType.PURCHASE)
        if purchase_status:
            query = query.filter(InventoryTransaction.status == purchase_status)
        if supplier and supplier.strip():
            query = query.filter(func.lower(InventoryTransaction.counterparty_name).like(f"%{supplier.strip().lower()}%"))
        if start:
            query = query.filter(InventoryTransaction.occurred_at >= start)
        if end:
            query = query.filter(InventoryTransaction.occurred_at <= end)

        return [
            PurchaseListItem(
                id=transaction.id,
                transaction_code=transaction.transaction_code,
                document_number=transaction.reference,
                supplier_name=transaction.counterparty_name,
                occurred_at=transaction.occurred_at,
                status=transaction.status,
                total_amount=to_decimal(transaction.total_amount),
                warehouse_name=transaction.warehouse.name
            )
            for transaction in query.order_by(InventoryTransaction.occurred_at.desc(), InventoryTransaction.id.desc()).all()
        ]

    def list_consumptions(
        self,
        article_code: Optional[str] = None,
        warehouse_code: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None
    ) -> List[ConsumptionRow]:
        start, end = date_bounds(date_from, date_to)
        query = self.db.query(InventoryMovement).join(
            InventoryTransaction, InventoryMovement.transaction_id == InventoryTransaction.id
        ).options(
            joinedload(InventoryMovement.transaction),
            joinedload(InventoryMovement.article).joinedload(Article.retail_unit),
            joinedload(InventoryMovement.article).joinedload(Article.storage_unit),
            joinedload(InventoryMovement.warehouse),
            joinedload(InventoryMovement.source_kit)
        ).filter(InventoryTransaction.transaction_type == TransactionType.CONSUMPTION)

        if normalize_code(article_code):
            query = query.filter(InventoryMovement.article.has(Article.article_code == normalize_code(article_code)))
        if normalize_code(warehouse_code):
            query = query.filter(InventoryMovement.warehouse.has(Warehouse.code == normalize_code(warehouse_code)))
        if start:
            query = query.filter(InventoryTransaction.occurred_at >= start)
        if end:
            query = query.filter(InventoryTransaction.occurred_at <= end)

        rows = []
        for movement in query.order_by(InventoryTransaction.occurred_at.desc(), InventoryMovement.id).all():
            quantity = to_decimal(movement.quantity_retail)
            transaction = movement.transaction
            rows.append(ConsumptionRow(
                id=movement.id,
                occurred_at=transaction.occurred_at,
                article_code=movement.article.article_code,
                article_name=movement.article.name,
                reason=transaction.reference,
                authorized_by=transaction.authorized_by,
                area=transaction.counterparty_name,
                warehouse_code=movement.warehouse.code,
                direction=movement.direction,
                quantity_retail=quantity,
                quantity_storage=round_quantity(quantity / safe_factor(movement.article.conversion_factor)),
                retail_unit=movement.article.retail_unit_name,
                storage_unit=movement.article.storage_unit_name,
                source_kit_code=movement.source_kit.article_code if movement.source_kit else None
            ))
        return rows

    def get_transaction_document(self, transaction_code: str) -> InventoryDocumentOut:
        code = (transaction_code or "").strip()
        if not code:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Debes indicar un folio de inventario"
            )
        transaction = self.db.query(InventoryTransaction).options(
            joinedload(InventoryTransaction.warehouse),
            selectinload(InventoryTransaction.entries).joinedload(InventoryTransactionEntry.article),
            selectinload(InventoryTransaction.entries).selectinload(InventoryTransactionEntry.movements)
        ).filter(InventoryTransaction.transaction_code == code).first()
        if not transaction:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Documento de inventario no encontrado: {code}"
            )

        entries = []
        for index, entry in enumerate(transaction.entries):
            factor = safe_factor(entry.unit_conversion_factor or entry.article.conversion_factor)
            quantity = to_decimal(entry.quantity_entered)
            if entry.entered_unit == InventoryUnit.STORAGE:
                quantity_retail, quantity_storage = quantity * factor, quantity
            else:
                quantity_retail, quantity_storage = quantity, quantity / factor
            entries.append(DocumentEntryOut(
                line_number=index + 1,
                article_code=entry.article.article_code,
                article_name=entry.article.name,
                direction=entry.direction,
                entered_unit=entry.entered_unit,
                quantity_entered=quantity,
                quantity_retail=round_quantity(quantity_retail),
                quantity_storage=round_quantity(quantity_storage),
                retail_unit=entry.article.retail_unit_name,
                storage_unit=entry.article.storage_unit_name,
                kit_multiplier=entry.kit_multiplier,
                cost_per_unit=entry.cost_per_unit,
                subtotal=entry.subtotal,
                notes=entry.notes,
                movements=[
                    DocumentMovementOut(
                        article_code=movement.article.article_code,
                        article_name=movement.article.name,
                        direction=movement.direction,
                        quantity_retail=to_decimal(movement.quantity_retail),
                        warehouse_code=movement.warehouse.code,
                        warehouse_name=movement.warehouse.name,
                        retail_unit=movement.article.retail_unit_name,
                        storage_unit=movement.article.storage_unit_name,
                        source_kit_article_code=movement.source_kit.article_code if movement.source_kit else None
                    )
                    for movement in entry.movements
                ]
            ))

        return InventoryDocumentOut(
            transaction_code=transaction.transaction_code,
            transaction_type=transaction.transaction_type,
            occurred_at=transaction.occurred_at,
            created_at=transaction.created_at,
            warehouse_code=transaction.warehouse.code,
            warehouse_name=transaction.warehouse.name,
            reference=transaction.reference,
            counterparty_name=transaction.counterparty_name,
            status=transaction.status,
            notes=transaction.notes,
            authorized_by=transaction.authorized_by,
            created_by=transaction.created_by,
            total_amount=transaction.total_amount,
            entries=entries
        )

    def list_transaction_headers(
        self,
        transaction_types: Optional[List[str]] = None,
        warehouse_codes: Optional[List[str]] = None,
        search: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: Optional[int] = 50
    ) -> List[TransactionHeaderOut]:
        valid_types = [t.value for t in TransactionType]
        types = [code for code in normalize_codes(transaction_types) if code in valid_types]
        warehouses = normalize_codes(warehouse_codes)
        limit = min(max(limit if limit is not None else 50, 1), 200)
        start, end = date_bounds(date_from, date_to)

        query = self.db.query(InventoryTransaction).join(
            Warehouse, InventoryTransaction.warehouse_id == Warehouse.id
        ).options(
            joinedload(InventoryTransaction.warehouse),
            selectinload(InventoryTransaction.entries)
        )
        if types:
            query = query.filter(InventoryTransaction.transaction_type.in_([TransactionType(t) for t in types]))
        if warehouses:
            query = query.filter(Warehouse.code.in_(warehouses))
        if search and search.strip():
            term = f"%{search.strip().lower()}%"
            query = query.filter(or_(
                func.lower(InventoryTransaction.transaction_code).like(term),
                func.lower(InventoryTransaction.reference).like(term),
                func.lower(InventoryTransaction.counterparty_name).like(term)
            ))
        if start:
            query = query.filter(InventoryTransaction.occurred_at >= start)
        if end:
            query = query.filter(InventoryTransaction.occurred_at <= end)

        transactions = query.order_by(
            InventoryTransaction.occurred_at.desc(), InventoryTransaction.id.desc()
        ).limit(limit).all()
        return [
            TransactionHeaderOut(
                transaction_code=transaction.transaction_code,
                transaction_type=transaction.transaction_type,
                occurred_at=transaction.occurred_at,
                warehouse_code=transaction.warehouse.code,
                warehouse_name=transaction.warehouse.name,
                reference=transaction.reference,
                counterparty_name=transaction.counterparty_name,
                status=transaction.status,
                notes=transaction.notes,
                total_amount=transaction.total_amount,
                entries_count=len(transaction.entries),
                entries_in=sum(1 for e in transaction.entries if e.direction == MovementDirection.IN),
                entries_out=sum(1 for e in transaction.entries if e.direction == MovementDirection.OUT)
            )
            for transaction in transactions
        ]
