# storefront/repos/slot_repo.py
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from storefront.data.models.slot import SlotModel


class SlotRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_slot(self, key: str) -> SlotModel | None:
        return self.db.get(SlotModel, key)

    def put_slot(self, key: str, value: str) -> SlotModel:
        slot = self.get_slot(key)
        if slot:
            slot.value = value
            slot.updated_at = datetime.now(timezone.utc)
        else:
            slot = SlotModel(key=key, value=value)
            self.db.add(slot)
        self.db.commit()
        return slot

    def delete_slot(self, key: str) -> bool:
        slot = self.get_slot(key)
        if not slot:
            return False
        self.db.delete(slot)
        self.db.commit()
        return True
