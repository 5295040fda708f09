from fastapi import APIRouter, Depends

from app.db.adapter import DatabaseAdapter
from app.db.session import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(db: DatabaseAdapter = Depends(get_db)):
    return {"status": "ok", "database": db.engine_name}
