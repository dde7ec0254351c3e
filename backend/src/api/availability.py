# pyright: reportMissingTypeStubs=false
"""
Doctor availability API endpoints.

GET returns the stored (authoritative) value. The WebSocket sends the
stored value first and then every change, each with a per-doctor sequence
number. Browsers cannot set headers on WebSockets, so the identity token is
passed as the `token` query parameter.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import NotFoundError
from auth.dependencies import PrincipalContext, get_current_principal
from services.availability_service import (
    AvailabilityService, AvailabilitySubscription, get_availability_broker,
)
from services.jwt_service import jwt_service
from services.principal_service import PrincipalService
from api.responses import AvailabilityResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/doctors/{doctor_id}/availability", summary="Get a doctor's availability")
async def get_doctor_availability(
    doctor_id: int,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> AvailabilityResponse:
    record = AvailabilityService.get_availability(db, doctor_id)
    return AvailabilityResponse(
        doctor_id=record.id,
        status=record.availability_status,
        sequence=get_availability_broker().current_sequence(record.id),
    )


async def _forward_events(websocket: WebSocket, subscription: AvailabilitySubscription) -> None:
    while True:
        event = await subscription.get()
        if event is None:
            # Replaced by a newer subscription from the same viewer session
            return
        await websocket.send_json(event.to_dict())


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


def _read_stored_status(db: Session, doctor_id: int) -> str:
    """Read the authoritative status and hand the connection back to the pool."""
    try:
        return AvailabilityService.get_availability(db, doctor_id).availability_status
    finally:
        db.close()


@router.websocket("/doctors/{doctor_id}/availability/ws")
async def subscribe_doctor_availability(
    websocket: WebSocket,
    doctor_id: int,
    token: Optional[str] = Query(None),
    session: str = Query("default", description="Viewer session; one subscription per session and doctor"),
    db: Session = Depends(get_db),
) -> None:
    """
    Stream a doctor's availability.

    The session is only used for short reads and is closed before waiting on
    events, so an open socket holds no store connection.
    """
    payload = jwt_service.verify_token(token) if token else None
    if payload is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    try:
        PrincipalService.resolve(db, payload.sub)
        AvailabilityService.get_availability(db, doctor_id)
    except NotFoundError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        db.close()

    await websocket.accept()
    broker = get_availability_broker()
    subscription = broker.subscribe(doctor_id, f"{payload.sub}:{session}")
    logger.info(f"Viewer {payload.sub} subscribed to availability of doctor {doctor_id}")

    forward_task: Optional[asyncio.Task[None]] = None
    disconnect_task: Optional[asyncio.Task[None]] = None
    try:
        # Subscribed before reading, so a change committed after the read is still delivered
        sequence = broker.current_sequence(doctor_id)
        stored_status = _read_stored_status(db, doctor_id)
        await websocket.send_json(broker.snapshot(doctor_id, stored_status, sequence).to_dict())

        forward_task = asyncio.create_task(_forward_events(websocket, subscription))
        disconnect_task = asyncio.create_task(_wait_for_disconnect(websocket))
        done, pending = await asyncio.wait(
            {forward_task, disconnect_task}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        if forward_task in done and not forward_task.cancelled() and forward_task.exception() is None:
            await websocket.close()
    except WebSocketDisconnect:
        pass
    finally:
        for task in (forward_task, disconnect_task):
            if task is not None:
                task.cancel()
        broker.unsubscribe(subscription)
        logger.info(f"Viewer {payload.sub} unsubscribed from availability of doctor {doctor_id}")
