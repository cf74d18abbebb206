from fastapi import FastAPI
from sqlalchemy import text
from shared.config.database import engine, Base, STORE_BACKEND

# IMPORTANT: import models so they register with Base
from services.order_service import models as order_models

from services.order_service.main import order_app

app = FastAPI(title="Ecommerce Cluster")

# Mounted apps do not receive startup events, so the cluster creates the schema
@app.on_event("startup")
async def startup_event():
    if STORE_BACKEND != "sql":
        return
    async with engine.begin() as conn:
        await conn.execute(text("CREATE SCHEMA IF NOT EXISTS order_schema"))
        await conn.run_sync(Base.metadata.create_all)

app.mount("/orders", order_app)
