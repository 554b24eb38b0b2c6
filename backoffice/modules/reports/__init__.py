"""
Módulo de reportes

No crea tablas: consulta facturas, inventario y cuentas por cobrar para
generar reportes operativos, exportables a CSV.

- routers/  -> endpoints FastAPI
- services/ -> consultas y agregaciones
- schemas/  -> modelos de respuesta
- utils/    -> exportación CSV
"""
