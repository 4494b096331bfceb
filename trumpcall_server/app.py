"""REST and WebSocket service exposing trumpcall rooms."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from trumpcall.config import Settings, get_settings
from trumpcall.database import SqlAlchemyStore
from trumpcall.errors import (
    FanoutError,
    IllegalPlay,
    InvalidAction,
    InvalidBid,
    PersistenceError,
    RoomFull,
    RoomNotFound,
    TrumpcallError,
)
from trumpcall.events import StateChange
from trumpcall.registry import RoomRegistry
from trumpcall.service import RoomService, RoomView, serialize_change

logger = logging.getLogger(__name__)

ERROR_STATUS = [
    (RoomNotFound, 404),
    (RoomFull, 409),
    (InvalidAction, 409),
    (IllegalPlay, 400),
    (InvalidBid, 400),
    (PersistenceError, 503),
    (FanoutError, 500),
]


class CreateRoomRequest(BaseModel):
    player_name: str
    player_id: Optional[str] = None


class JoinRequest(BaseModel):
    player_name: str
    player_id: Optional[str] = None


class BidRequest(BaseModel):
    player_id: str
    amount: Optional[int] = None


class TrumpRequest(BaseModel):
    player_id: str
    suit: str


class CardPayload(BaseModel):
    suit: str
    rank: str


class PlayRequest(BaseModel):
    player_id: str
    card: CardPayload


def seat_response(view: RoomView, player_id: str) -> Dict[str, object]:
    return {
        "room_id": view.room_id,
        "room_code": view.room_code,
        "player_id": player_id,
        "player_number": view.player_number,
        "state": view.to_dict(),
    }


def create_app(registry: Optional[RoomRegistry] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if registry is None:
            store = SqlAlchemyStore.from_url(settings.database_url)
            app.state.registry = RoomRegistry(store, settings=settings)
        else:
            app.state.registry = registry
        app.state.service = RoomService(app.state.registry)
        yield
        app.state.registry.shutdown()

    app = FastAPI(title="trumpcall", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def service_for(request: Request) -> RoomService:
        return request.app.state.service

    @app.exception_handler(TrumpcallError)
    async def handle_trumpcall_error(request: Request, exc: TrumpcallError) -> JSONResponse:
        status = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 400)
        return JSONResponse(status_code=status, content=exc.to_dict())

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "healthy"}

    @app.post("/rooms")
    def create_room(body: CreateRoomRequest, request: Request) -> Dict[str, object]:
        view, player = service_for(request).create_room(body.player_name, body.player_id)
        return seat_response(view, player.identity)

    @app.post("/rooms/{code}/join")
    def join_room(code: str, body: JoinRequest, request: Request) -> Dict[str, object]:
        view, player = service_for(request).join_room(code, body.player_name, body.player_id)
        return seat_response(view, player.identity)

    @app.get("/rooms/{room_id}/state")
    def room_state(room_id: str, request: Request, player_id: Optional[str] = None) -> Dict[str, object]:
        return {"state": service_for(request).get_room_view(room_id, player_id).to_dict()}

    @app.post("/rooms/{room_id}/bid")
    def place_bid(room_id: str, body: BidRequest, request: Request) -> Dict[str, object]:
        view = service_for(request).place_bid(room_id, body.player_id, body.amount)
        return {"state": view.to_dict()}

    @app.post("/rooms/{room_id}/trump")
    def select_trump(room_id: str, body: TrumpRequest, request: Request) -> Dict[str, object]:
        view = service_for(request).select_trump(room_id, body.player_id, body.suit)
        return {"state": view.to_dict()}

    @app.post("/rooms/{room_id}/play")
    def play_card(room_id: str, body: PlayRequest, request: Request) -> Dict[str, object]:
        view = service_for(request).play_card(room_id, body.player_id, body.card.model_dump())
        return {"state": view.to_dict()}

    @app.websocket("/rooms/{room_id}/ws")
    async def room_events(websocket: WebSocket, room_id: str, player_id: Optional[str] = None) -> None:
        registry: RoomRegistry = websocket.app.state.registry
        service: RoomService = websocket.app.state.service
        await websocket.accept()
        try:
            room = await run_in_threadpool(registry.snapshot, room_id)
        except RoomNotFound as exc:
            await websocket.send_json(exc.to_dict())
            await websocket.close(code=4404)
            return

        seat = room.seat_of(player_id) if player_id else None
        if seat is not None:
            await run_in_threadpool(registry.set_connected, room_id, player_id, True)

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()

        def observer(changed_room: str, change: StateChange) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, serialize_change(change))

        subscription = await run_in_threadpool(registry.subscribe, room_id, observer, seat)
        view = await run_in_threadpool(service.get_room_view, room_id, player_id)
        await websocket.send_json({"kind": "snapshot", "value": view.to_dict()})

        async def forward() -> None:
            while True:
                await websocket.send_json(await queue.get())

        sender = asyncio.create_task(forward())
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info(f"Observer left room {room_id} (seat {seat})")
        finally:
            sender.cancel()
            subscription.cancel()
            if seat is not None:
                await run_in_threadpool(registry.set_connected, room_id, player_id, False)

    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
