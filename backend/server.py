"""
Mes Adresses - API Backend

Démarre avec:
    uvicorn server:app --host 0.0.0.0 --port 8001 --reload
"""

import os
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from config import client, db, SCHEDULER_ENABLED
from email_service import email_service
from routes import publication
from scheduler_service import TaskScheduler
from services.api_depot import ApiDepotClient
from services.errors import BalError
from services.publication import PublicationService

# Configuration logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("mes_adresses")

app = FastAPI(
    title="Mes Adresses API",
    description="Gestion et publication des Bases Adresses Locales",
    version="1.0.0"
)

app.include_router(publication.router, prefix="/api")

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BalError)
async def bal_error_handler(request: Request, exc: BalError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/")
async def root():
    return {
        "name": "Mes Adresses API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


# ==================== STARTUP / SHUTDOWN ====================

api_depot = ApiDepotClient()
scheduler = TaskScheduler(db, PublicationService(db, api_depot, email_service), api_depot)


@app.on_event("startup")
async def startup():
    await db.bases_locales.create_index("id", unique=True)
    await db.bases_locales.create_index("commune")
    await db.bases_locales.create_index([("status", 1), ("sync.status", 1)])
    await db.voies.create_index("id", unique=True)
    await db.voies.create_index("bal_id")
    await db.numeros.create_index("id", unique=True)
    await db.numeros.create_index([("bal_id", 1), ("deleted_at", 1)])
    await db.numeros.create_index("voie_id")
    await db.numeros.create_index("toponyme_id")
    await db.toponymes.create_index("id", unique=True)
    await db.toponymes.create_index("bal_id")
    logger.info("Index MongoDB créés")

    if SCHEDULER_ENABLED:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown():
    scheduler.stop()
    client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
