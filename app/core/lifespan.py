from contextlib import asynccontextmanager
from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.auth import dev_mode, init_firebase
from app.database.session import async_engine
from app.payments import get_billing_providers

import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Job Board Billing API iniciando...")

    # Firebase
    if dev_mode():
        logger.warning("⚠️ AUTH_DEV_MODE ativo: requisições sem token usam o usuário de desenvolvimento")
    init_firebase()

    # Banco
    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("✅ Conexão com o banco estabelecida")
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"❌ Erro ao conectar ao banco: {e}")

    # Provedores
    configured = sorted(get_billing_providers())
    if configured:
        logger.info(f"✅ Provedores de pagamento configurados: {', '.join(configured)}")
    else:
        logger.warning("⚠️ Nenhum provedor de pagamento configurado (STRIPE_SECRET_KEY / ASAAS_API_KEY)")

    yield

    logger.info("🛑 Job Board Billing API encerrando...")
    await async_engine.dispose()
