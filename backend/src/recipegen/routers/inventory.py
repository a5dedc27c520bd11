from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlmodel import Session, select

from recipegen.auth.dependencies import get_current_user
from recipegen.core.database import get_session
from recipegen.core.errors import NotFound
from recipegen.models.shopping import InventoryItem
from recipegen.models.users import User
from recipegen.schemas import InventoryOut, InventoryUpsert
from recipegen.utils.dates import utc_now

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("")
@router.get("/", include_in_schema=False)
def list_inventory(user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    items = session.exec(
        select(InventoryItem).where(InventoryItem.user_id == user.id).order_by(InventoryItem.ingredient_name)
    ).all()
    return {"inventory": [InventoryOut.model_validate(item) for item in items]}


@router.put("")
@router.put("/", include_in_schema=False)
def upsert_inventory_item(
    payload: InventoryUpsert,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    name = payload.ingredient_name.strip().lower()
    item = session.exec(
        select(InventoryItem).where(InventoryItem.user_id == user.id, InventoryItem.ingredient_name == name)
    ).first()
    if item is None:
        item = InventoryItem(user_id=user.id, ingredient_name=name)
    item.quantity = payload.quantity
    item.unit = payload.unit
    item.updated_at = utc_now()
    session.add(item)
    session.commit()
    session.refresh(item)
    return {"item": InventoryOut.model_validate(item)}


@router.delete("/{item_id}", status_code=204)
def delete_inventory_item(
    item_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    item = session.get(InventoryItem, item_id)
    if item is None or item.user_id != user.id:
        raise NotFound("Inventory item not found")
    session.delete(item)
    session.commit()
    return Response(status_code=204)
