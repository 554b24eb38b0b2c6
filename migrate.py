#!/usr/bin/env python3
"""
Administración de la base de datos del back office.

Migraciones con Alembic y carga de los datos base (condiciones de pago y
lista de precios predeterminada).

    python migrate.py upgrade
    python migrate.py create "agregar tabla de propinas"
    python migrate.py seed
"""
import argparse
import logging
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

from backoffice.core.config import settings
from backoffice.database.database import SessionLocal

root_dir = Path(__file__).parent

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger("migrate")


def get_alembic_config() -> Config:
    alembic_cfg = Config(str(root_dir / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(root_dir / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.database_url)
    return alembic_cfg


def seed_base_data() -> None:
    """Condiciones de pago estándar y la lista de precios predeterminada, si faltan."""
    from backoffice.modules.cxc.service import seed_payment_terms
    from backoffice.modules.prices.schemas import PriceListUpsert
    from backoffice.modules.prices.service import PriceListService

    db = SessionLocal()
    try:
        created = seed_payment_terms(db)
        logger.info(f"Condiciones de pago nuevas: {created}")

        prices = PriceListService(db)
        if prices.get_default_code() is None:
            prices.upsert_price_list(PriceListUpsert(
                code=settings.DEFAULT_PRICE_LIST_CODE,
                name="Lista base",
                is_default=True
            ))
            logger.info(f"Lista de precios {settings.DEFAULT_PRICE_LIST_CODE} creada como predeterminada")
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Migraciones y datos base del back office")
    subparsers = parser.add_subparsers(dest="action", required=True)

    create = subparsers.add_parser("create", help="Crear migración autogenerada")
    create.add_argument("message")

    upgrade = subparsers.add_parser("upgrade", help="Ejecutar migraciones pendientes")
    upgrade.add_argument("revision", nargs="?", default="head")

    downgrade = subparsers.add_parser("downgrade", help="Revertir migraciones")
    downgrade.add_argument("revision", nargs="?", default="-1")

    subparsers.add_parser("history", help="Ver historial")
    subparsers.add_parser("current", help="Ver revisión actual")
    subparsers.add_parser("seed", help="Cargar condiciones de pago y lista base")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    alembic_cfg = get_alembic_config()

    if args.action == "create":
        command.revision(alembic_cfg, autogenerate=True, message=args.message)
        logger.info(f"Migración creada: {args.message}")
    elif args.action == "upgrade":
        command.upgrade(alembic_cfg, args.revision)
        logger.info("Migraciones ejecutadas")
    elif args.action == "downgrade":
        command.downgrade(alembic_cfg, args.revision)
        logger.info(f"Base de datos revertida a {args.revision}")
    elif args.action == "history":
        command.history(alembic_cfg)
    elif args.action == "current":
        command.current(alembic_cfg)
    elif args.action == "seed":
        seed_base_data()
    return 0


if __name__ == "__main__":
    sys.exit(main())
