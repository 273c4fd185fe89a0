import logging
from typing import List, Optional
from flowday import crud
from flowday.services.common import simulate_latency

logger = logging.getLogger("services.category")


async def list_categories() -> List:
    await simulate_latency()
    return await crud.get_categories()


async def get_category(category_id: int):
    await simulate_latency(0.8)
    return await crud.get_category(category_id)


async def create_category(name: str, *, color: str = "#6366f1", icon: Optional[str] = None):
    await simulate_latency(1.2)
    return await crud.create_category(name.strip(), color=color, icon=icon)


async def update_category(category_id: int, **changes):
    await simulate_latency()
    return await crud.update_category(category_id, **changes)


async def delete_category(category_id: int) -> bool:
    await simulate_latency(0.8)
    return await crud.delete_category(category_id)
