# snwms/api/routers/deliveries.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from snwms.api.deps import get_engine
from snwms.schemas.delivery import DeliveryCreateIn, DeliveryOut
from snwms.services.inventory_engine import InventoryEngine

router = APIRouter(prefix="/deliveries", tags=["deliveries"])


@router.post("", response_model=DeliveryOut, status_code=201)
async def create_delivery(
    payload: DeliveryCreateIn,
    engine: InventoryEngine = Depends(get_engine),
) -> DeliveryOut:
    delivery = await engine.deliver(
        actor=payload.actor,
        batch_id=payload.batch_id,
        unit_id=payload.unit_id,
        serial_number=payload.serial_number,
        shipping_label_data=payload.shipping_label_data,
        customer_info=payload.customer_info,
    )
    return DeliveryOut.model_validate(delivery)


@router.get("/{delivery_id}", response_model=DeliveryOut)
async def get_delivery(delivery_id: str, engine: InventoryEngine = Depends(get_engine)) -> DeliveryOut:
    return DeliveryOut.model_validate(await engine.get_delivery(delivery_id))
