from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
import logging

from pos_backend.config import settings
from pos_backend.database import db
from pos_backend.api import auth, grns, inventory, audit, branches, purchase_orders

# Setup Logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    db.connect()
    logger.info(f"POS backend started ({settings.ENVIRONMENT})")
    yield
    db.close()

app = FastAPI(
    title="POS Retail Operations API",
    description="Backend API for goods receiving, branch inventory and stock audit",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Router Registration
app.include_router(auth.router)
app.include_router(grns.router)
app.include_router(inventory.router)
app.include_router(audit.router)
app.include_router(branches.router)
app.include_router(purchase_orders.router)

# Health Check
@app.get("/health")
async def health_check():
    return {"status": "ok", "environment": settings.ENVIRONMENT}

if __name__ == "__main__":
    uvicorn.run("pos_backend.main:app", host="0.0.0.0", port=8000, reload=True)
