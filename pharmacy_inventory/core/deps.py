from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from pharmacy_inventory.db.session import SessionLocal
from pharmacy_inventory.repositories.base import InventoryStore
from pharmacy_inventory.repositories.sql import SqlInventoryStore


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> InventoryStore:
    return SqlInventoryStore(db)
