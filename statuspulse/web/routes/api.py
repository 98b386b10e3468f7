"""API Routes - dashboard and event hooks"""

import logging
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends

from ...dispatcher import NotificationDispatcher
from ...subscription.manager import SubscriptionManager
from ..dependencies import get_dispatcher, get_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/pages/{page_id}/subscribers")
async def list_subscribers(
    page_id: int,
    order: Literal["asc", "desc"] = "desc",
    manager: SubscriptionManager = Depends(get_manager),
):
    entries = manager.list_page_subscribers(page_id, order)
    return [entry.model_dump(mode="json") for entry in entries]


@router.delete("/pages/{page_id}/subscribers/{subscriber_id}")
async def delete_subscriber(
    page_id: int,
    subscriber_id: int,
    manager: SubscriptionManager = Depends(get_manager),
):
    manager.delete_subscriber(subscriber_id, page_id)
    return {"success": True}


# Called by the writers of status report updates / maintenances once their
# transaction committed. Dispatch runs after the response is sent.

@router.post("/status-report-updates/{update_id}/notify", status_code=202)
async def notify_status_report_update(
    update_id: int,
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    background_tasks.add_task(dispatcher.dispatch_status_report_update, update_id)
    return {"scheduled": True}


@router.post("/maintenances/{maintenance_id}/notify", status_code=202)
async def notify_maintenance(
    maintenance_id: int,
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    background_tasks.add_task(dispatcher.dispatch_maintenance_update, maintenance_id)
    return {"scheduled": True}


@router.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}
