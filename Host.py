# Host.py serves the FarmSmart dashboard backend
#
# Responsibilities:
# - Serve the latest combined environment reading (GET /api/environment)
# - Serve paginated history for the records page (GET /api/records)
# - Serve chart series (GET /api/history)
# - Keep live sensor/device/system state from MQTT (GET /api/state)
# - Toggle devices and system flags (POST /api/devices/..., /api/system/...)
# - Push state changes in realtime (WebSocket /ws)

import json
import logging
import sqlite3
import threading
import asyncio
from typing import Any, Dict, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

import Config
import DB  # <--DB.py module
from Dispatcher import CommandDispatcher
from Errors import DatabaseUnavailable, NotConnected, TransportError
from MSG import EnvironmentRecord, Pagination, RecordsPage
from Normalizer import format_value
from Router import MessageRouter
from State import Device, Flag, StateSnapshot, StateStore, now_iso
from Transport import STATUS_DISCONNECTED, MqttTransport

_LOGGER = logging.getLogger(__name__)


# ----------------------------
# APP + SHARED STATE
# ----------------------------
app = FastAPI(title=Config.APP_TITLE)

store = StateStore()
router = MessageRouter(store)
dispatcher = CommandDispatcher(store)
transport: Optional[MqttTransport] = None

_loop: Optional[asyncio.AbstractEventLoop] = None

_ws_lock = threading.Lock()
_ws_clients: Set[WebSocket] = set()

_mirror_lock = threading.Lock()
_mirrored_flags: Optional[Dict[str, bool]] = None


# ----------------------------
# HELPERS
# ----------------------------
def mqtt_status() -> str:
    return transport.status if transport is not None else STATUS_DISCONNECTED


def state_payload(snap: StateSnapshot) -> Dict[str, Any]:
    payload = snap.to_dict()
    payload["display"] = {c.value: format_value(c, v) for c, v in snap.sensors.items()}
    payload["mqtt"] = mqtt_status()
    return payload


def parse_int(value: Optional[str], default: int) -> int:
    # Lenient like the records page expects: junk or 0 falls back to the default
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def records_content(page: RecordsPage) -> Dict[str, Any]:
    content = page.model_dump()
    if content["error"] is None:
        del content["error"]
    return content


def mirror_flags(snap: StateSnapshot) -> None:
    """Write changed system flags to the DB so the UI can warm-start."""
    global _mirrored_flags
    flags = snap.flags.to_dict()
    with _mirror_lock:
        if flags == _mirrored_flags:
            return
        try:
            DB.save_system_flags(flags)
        except (sqlite3.Error, DatabaseUnavailable) as err:
            _LOGGER.warning("Could not mirror system flags: %s", err)
            return
        _mirrored_flags = flags


async def ws_broadcast(payload: Dict[str, Any]) -> None:
    msg = json.dumps(payload, ensure_ascii=False)
    with _ws_lock:
        clients = list(_ws_clients)

    dead: list[WebSocket] = []
    for ws in clients:
        try:
            await ws.send_text(msg)
        except Exception:
            dead.append(ws)

    if dead:
        with _ws_lock:
            for ws in dead:
                _ws_clients.discard(ws)


def schedule_broadcast(payload: Dict[str, Any]) -> None:
    # State changes arrive on the MQTT thread; hand the send to the event loop
    loop = _loop
    if loop is None or loop.is_closed():
        return
    with _ws_lock:
        if not _ws_clients:
            return
    asyncio.run_coroutine_threadsafe(ws_broadcast(payload), loop)


def on_state_change(snap: StateSnapshot) -> None:
    mirror_flags(snap)
    schedule_broadcast({"type": "state", **state_payload(snap)})


def on_mqtt_status(status: str) -> None:
    schedule_broadcast({"type": "mqtt", "status": status})


store.add_listener(on_state_change)


# ----------------------------
# LIFECYCLE
# ----------------------------
@app.on_event("startup")
async def on_startup() -> None:
    global _loop, transport, _mirrored_flags
    _loop = asyncio.get_running_loop()

    DB.init_db()

    # Live state is rebuilt from MQTT; the mirror only tells us how the last session ended
    previous = DB.load_system_flags()
    if previous:
        _LOGGER.info("Previous session system flags: %s", previous)
    fresh = store.flags.to_dict()
    DB.save_system_flags(fresh)
    with _mirror_lock:
        _mirrored_flags = fresh

    if Config.MQTT_ENABLED and transport is None:
        transport = MqttTransport(router, on_status=on_mqtt_status)
        dispatcher.transport = transport
        transport.start()


@app.on_event("shutdown")
def on_shutdown() -> None:
    if transport is not None:
        transport.stop()


# ----------------------------
# ROUTES
# ----------------------------
@app.get("/health")
def health() -> Dict[str, Any]:
    return {"ok": True, "service": "host", "time": now_iso(), "mqtt": mqtt_status()}


@app.get("/api/environment")
def api_environment() -> JSONResponse:
    try:
        latest = DB.get_latest_environment()
    except DatabaseUnavailable as err:
        _LOGGER.error("Database connection error: %s", err)
        return JSONResponse(status_code=500, content={"error": "Database connection failed"})
    except sqlite3.Error as err:
        # Missing tables or a bad query: keep the dashboard alive with zeros
        _LOGGER.error("Environment query failed: %s", err)
        latest = EnvironmentRecord(
            time=now_iso(), temperature=0, humidity=0, co2=0, waterTemp=0, ph=0, ec=0
        ).model_dump()

    # One-element list, the shape the dashboard has always consumed
    return JSONResponse(status_code=200, content=[EnvironmentRecord(**latest).model_dump()])


@app.get("/api/records")
def api_records(type: str = "air", page: Optional[str] = None, limit: Optional[str] = None) -> JSONResponse:
    page_num = parse_int(page, 1)
    limit_num = parse_int(limit, Config.RECORDS_DEFAULT_LIMIT)
    table, _ = DB.record_source(type)
    _LOGGER.info("Records request: type=%s page=%s limit=%s", type, page_num, limit_num)

    empty = Pagination(total=0, page=page_num, limit=limit_num)
    try:
        if not DB.table_exists(table):
            _LOGGER.warning("Table %s does not exist", table)
            return JSONResponse(status_code=200, content=records_content(RecordsPage(records=[], pagination=empty)))

        records, total = DB.get_records(type, page_num, limit_num)
    except DatabaseUnavailable as err:
        _LOGGER.error("Database connection error: %s", err)
        content = {"error": "Server error"}
        if Config.ENV == "development":
            content["details"] = str(err)
        return JSONResponse(status_code=500, content=content)
    except sqlite3.Error as err:
        _LOGGER.error("Records query failed: %s", err)
        error = {"message": "Database query failed"}
        if Config.ENV == "development":
            error["details"] = str(err)
        return JSONResponse(status_code=200, content=records_content(RecordsPage(records=[], pagination=empty, error=error)))

    if not records:
        _LOGGER.warning("No rows in %s", table)
    result = RecordsPage(records=records, pagination=Pagination(total=total, page=page_num, limit=limit_num))
    return JSONResponse(status_code=200, content=records_content(result))


@app.get("/api/history")
def api_history(type: str = "air", limit: int = Config.HISTORY_DEFAULT_LIMIT) -> JSONResponse:
    """Serve historical sensor data for charting."""
    data_type = "air" if type == "air" else "water"
    fields = DB.RECORD_FIELDS[data_type]
    try:
        records, _ = DB.get_records(data_type, 1, max(1, limit))
    except (sqlite3.Error, DatabaseUnavailable) as err:
        _LOGGER.error("History query failed: %s", err)
        return JSONResponse(status_code=200, content={"ok": False, "type": data_type, "error": "Database query failed"})

    # Transform to time series format, oldest first
    series: Dict[str, Any] = {"ok": True, "type": data_type, "times": []}
    for name in fields:
        series[name] = []
    for record in reversed(records):
        series["times"].append(record.get("timestamp"))
        for name in fields:
            series[name].append(record.get(name))

    return JSONResponse(status_code=200, content=series)


@app.get("/api/state")
def api_state() -> JSONResponse:
    return JSONResponse(status_code=200, content=state_payload(store.snapshot()))


@app.post("/api/devices/{device}/toggle")
def api_toggle_device(device: Device) -> JSONResponse:
    try:
        requested = dispatcher.toggle(device)
    except NotConnected as err:
        return JSONResponse(status_code=503, content={"ok": False, "error": str(err)})
    except TransportError as err:
        _LOGGER.error("Toggle %s failed: %s", device.value, err)
        return JSONResponse(status_code=502, content={"ok": False, "error": str(err)})
    return JSONResponse(status_code=200, content={"ok": True, "device": device.value, "requested": requested})


@app.post("/api/system/{flag}/toggle")
def api_toggle_flag(flag: Flag) -> JSONResponse:
    flags = dispatcher.toggle_flag(flag)
    return JSONResponse(status_code=200, content={"ok": True, "system": flags.to_dict()})


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    with _ws_lock:
        _ws_clients.add(ws)

    # Send current state immediately
    try:
        await ws.send_text(json.dumps({"type": "state", **state_payload(store.snapshot())}, ensure_ascii=False))
    except Exception:
        pass

    try:
        # Server pushes via ws_broadcast(); incoming frames are ignored
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        with _ws_lock:
            _ws_clients.discard(ws)


def main() -> None:
    import uvicorn

    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(app, host=Config.HTTP_HOST, port=Config.HTTP_PORT)


if __name__ == "__main__":
    main()
