"""
Servicio de consecutivos

- SequenceService: definiciones, vista previa del siguiente folio y emisión
- Documentos de inventario: contador GLOBAL de la definición asignada al tipo
- Facturas: contador por caja (CASH_REGISTER, scope_key = id de la caja)

La emisión no hace commit: corre dentro de la transacción del documento que
consume el folio.
"""
from typing import List, Optional, Dict
from sqlalchemy.orm import Session
from fastapi import HTTPException, status
import logging

from backoffice.common.validators import normalize_code
from backoffice.modules.sequences.models import (
    SequenceDefinition, SequenceCounter, InventorySequenceSetting, SequenceScope, CounterScope
)
from backoffice.modules.sequences.schemas import (
    SequenceDefinitionCreate, SequenceDefinitionUpdate, SequenceDefinitionOut,
    InventoryAssignment
)

logger = logging.getLogger(__name__)

INVENTORY_TRANSACTION_LABELS: Dict[str, str] = {
    "PURCHASE": "Compras",
    "CONSUMPTION": "Consumo",
    "ADJUSTMENT": "Ajustes",
    "TRANSFER": "Traspasos",
}

MAX_PADDING = 18


def clamp_padding(value: Optional[int]) -> int:
    if value is None:
        return 6
    return max(1, min(MAX_PADDING, int(value)))


def format_sequence(definition: SequenceDefinition, value: int) -> str:
    """prefijo + valor con ceros a la izquierda + sufijo"""
    padded = str(value).zfill(clamp_padding(definition.padding))
    return f"{definition.prefix or ''}{padded}{definition.suffix or ''}"


class SequenceService:
    def __init__(self, db: Session):
        self.db = db

    # Definitions
    def get_by_code(self, code: str) -> Optional[SequenceDefinition]:
        return self.db.query(SequenceDefinition).filter(
            SequenceDefinition.code == normalize_code(code)
        ).first()

    def get_by_code_or_404(self, code: str) -> SequenceDefinition:
        definition = self.get_by_code(code)
        if not definition:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Consecutivo no encontrado: {normalize_code(code)}"
            )
        return definition

    def list_definitions(self, scope: Optional[SequenceScope] = None) -> List[SequenceDefinitionOut]:
        query = self.db.query(SequenceDefinition)
        if scope:
            query = query.filter(SequenceDefinition.scope == scope)
        definitions = query.order_by(SequenceDefinition.code).all()
        return [self.to_output(definition) for definition in definitions]

    def create_definition(self, data: SequenceDefinitionCreate) -> SequenceDefinitionOut:
        code = normalize_code(data.code)
        if not code:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El código del consecutivo es obligatorio"
            )
        if self.get_by_code(code):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un consecutivo con el código {code}"
            )

        definition = SequenceDefinition(
            code=code,
            name=data.name.strip(),
            scope=data.scope,
            prefix=data.prefix or "",
            suffix=data.suffix or "",
            padding=clamp_padding(data.padding),
            start_value=max(0, data.start_value),
            step=max(1, data.step),
            is_active=data.is_active
        )
        self.db.add(definition)
        self.db.commit()
        self.db.refresh(definition)
        logger.info(f"Consecutivo creado: {code} ({data.scope.value})")
        return self.to_output(definition)

    def update_definition(self, code: str, data: SequenceDefinitionUpdate) -> SequenceDefinitionOut:
        definition = self.get_by_code_or_404(code)
        if data.name is not None:
            definition.name = data.name.strip()
        if data.prefix is not None:
            definition.prefix = data.prefix
        if data.suffix is not None:
            definition.suffix = data.suffix
        if data.padding is not None:
            definition.padding = clamp_padding(data.padding)
        if data.start_value is not None:
            definition.start_value = max(0, data.start_value)
        if data.step is not None:
            definition.step = max(1, data.step)
        if data.is_active is not None:
            definition.is_active = data.is_active
        self.db.commit()
        self.db.refresh(definition)
        return self.to_output(definition)

    # Counters
    def _get_counter(
        self, definition: SequenceDefinition, scope_type: CounterScope, scope_key: str
    ) -> Optional[SequenceCounter]:
        return self.db.query(SequenceCounter).filter(
            SequenceCounter.definition_id == definition.id,
            SequenceCounter.scope_type == scope_type,
            SequenceCounter.scope_key == scope_key
        ).first()

    def _next_value(self, definition: SequenceDefinition, counter: Optional[SequenceCounter]) -> int:
        if counter is None:
            return int(definition.start_value or 0)
        return int(counter.current_value) + max(1, int(definition.step or 1))

    def preview_next(
        self,
        definition: SequenceDefinition,
        scope_type: CounterScope = CounterScope.GLOBAL,
        scope_key: str = ""
    ) -> str:
        counter = self._get_counter(definition, scope_type, scope_key)
        return format_sequence(definition, self._next_value(definition, counter))

    def _issue(self, definition: SequenceDefinition, scope_type: CounterScope, scope_key: str) -> str:
        counter = self._get_counter(definition, scope_type, scope_key)
        value = self._next_value(definition, counter)
        if counter is None:
            counter = SequenceCounter(
                definition_id=definition.id,
                scope_type=scope_type,
                scope_key=scope_key,
                current_value=value
            )
            self.db.add(counter)
        else:
            counter.current_value = value
        self.db.flush()
        return format_sequence(definition, value)

    # Inventory assignments
    def list_inventory_assignments(self) -> List[InventoryAssignment]:
        settings_by_type = {
            setting.transaction_type: setting
            for setting in self.db.query(InventorySequenceSetting).all()
        }
        result = []
        for transaction_type, label in INVENTORY_TRANSACTION_LABELS.items():
            setting = settings_by_type.get(transaction_type)
            definition = setting.definition if setting else None
            result.append(InventoryAssignment(
                transaction_type=transaction_type,
                label=label,
                sequence_code=definition.code if definition else None,
                next_preview=self.preview_next(definition) if definition else None
            ))
        return result

    def assign_inventory_sequence(self, transaction_type: str, sequence_code: str) -> InventoryAssignment:
        transaction_type = normalize_code(transaction_type)
        if transaction_type not in INVENTORY_TRANSACTION_LABELS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Tipo de movimiento de inventario inválido: {transaction_type}"
            )
        definition = self.get_by_code_or_404(sequence_code)
        if definition.scope != SequenceScope.INVENTORY:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El consecutivo seleccionado no corresponde a inventario"
            )

        setting = self.db.query(InventorySequenceSetting).filter(
            InventorySequenceSetting.transaction_type == transaction_type
        ).first()
        if setting:
            setting.definition_id = definition.id
        else:
            self.db.add(InventorySequenceSetting(
                transaction_type=transaction_type,
                definition_id=definition.id
            ))
        self.db.commit()
        logger.info(f"Consecutivo {definition.code} asignado a {transaction_type}")
        return InventoryAssignment(
            transaction_type=transaction_type,
            label=INVENTORY_TRANSACTION_LABELS[transaction_type],
            sequence_code=definition.code,
            next_preview=self.preview_next(definition)
        )

    def generate_inventory_code(self, transaction_type: str) -> str:
        setting = self.db.query(InventorySequenceSetting).filter(
            InventorySequenceSetting.transaction_type == transaction_type
        ).first()
        definition = setting.definition if setting else None
        if not definition or not definition.is_active:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Configura un consecutivo para este tipo de movimiento de inventario"
            )
        return self._issue(definition, CounterScope.GLOBAL, "")

    def generate_invoice_number(self, cash_register) -> str:
        """Siguiente número de factura para la caja indicada."""
        definition = None
        if cash_register.invoice_sequence_definition_id:
            definition = self.db.get(SequenceDefinition, cash_register.invoice_sequence_definition_id)
        if not definition or not definition.is_active or definition.scope != SequenceScope.INVOICE:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"La caja {cash_register.code} no tiene un consecutivo de facturas activo"
            )
        return self._issue(definition, CounterScope.CASH_REGISTER, str(cash_register.id))

    def to_output(self, definition: SequenceDefinition) -> SequenceDefinitionOut:
        preview = None
        if definition.scope == SequenceScope.INVENTORY:
            preview = self.preview_next(definition)
        else:
            preview = format_sequence(definition, int(definition.start_value or 0))
        return SequenceDefinitionOut(
            id=definition.id,
            code=definition.code,
            name=definition.name,
            scope=definition.scope,
            prefix=definition.prefix or "",
            suffix=definition.suffix or "",
            padding=definition.padding,
            start_value=definition.start_value,
            step=definition.step,
            is_active=definition.is_active,
            next_preview=preview
        )
