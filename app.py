from __future__ import annotations

import logging
from typing import Any, Optional

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import BadRequest, HTTPException, NotFound

from config import SmartParkConfig
from errors import ParkingError
from models import Reserved
from parking_system import AUTO, ParkingSystem
from storage import JsonFileStore, MemoryStore

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


def build_system(config: SmartParkConfig) -> ParkingSystem:
    store = JsonFileStore(config.data_file) if config.data_file else MemoryStore()
    return ParkingSystem.from_store(store, capacity=config.capacity)


def _json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise BadRequest("JSON body must be an object")
    return payload


def create_app(config: Optional[SmartParkConfig] = None, system: Optional[ParkingSystem] = None) -> Flask:
    """
    画面側から呼ばれる API

    - 予約 / 削除 / 検索 / 並び替え / 逆順 の 5 操作
    - 変更系のレスポンスには変更後の state を含める（画面の再描画用）
    """
    cfg = config or SmartParkConfig.from_env()
    if system is None:
        system = build_system(cfg)

    app = Flask(__name__)
    app.config["SMARTPARK"] = cfg
    app.extensions["smartpark"] = system

    # -------------------------
    # エラー
    # -------------------------
    @app.errorhandler(ParkingError)
    def handle_parking_error(e: ParkingError):
        return jsonify({"error": str(e), "type": type(e).__name__}), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"error": e.description, "type": e.name}), e.code

    # -------------------------
    # 参照
    # -------------------------
    @app.get("/health")
    def health() -> Response:
        return jsonify({"ok": True, "version": __version__})

    @app.get("/api/state")
    def api_state() -> Response:
        return jsonify(system.state())

    @app.get("/api/search")
    def api_search() -> Response:
        term = (request.args.get("q") or "").strip()
        results = system.search(term)
        return jsonify({
            "term": term,
            "count": len(results),
            "results": [r.to_dict() for r in results],
        })

    @app.get("/api/slots/<int:slot>")
    def api_slot(slot: int) -> Response:
        r = system.find_by_slot(slot)
        if r is None:
            raise NotFound(f"slot {slot} is available")
        return jsonify(r.to_dict())

    @app.get("/api/reservations/<reservation_id>/sticker")
    def api_sticker(reservation_id: str) -> Response:
        sticker = system.sticker(reservation_id)
        if sticker is None:
            raise NotFound("reservation not found")
        return jsonify(sticker)

    # -------------------------
    # 変更
    # -------------------------
    @app.post("/api/reservations")
    def api_insert():
        payload = _json_body()
        result = system.insert(payload.get("plate"), payload.get("slot", AUTO))
        body = result.to_dict()
        body["state"] = system.state()
        return jsonify(body), (201 if isinstance(result, Reserved) else 202)

    @app.delete("/api/reservations/<reservation_id>")
    def api_delete(reservation_id: str) -> Response:
        result = system.delete(reservation_id)
        body = result.to_dict()
        body["state"] = system.state()
        return jsonify(body)

    @app.post("/api/sort")
    def api_sort() -> Response:
        by = str(_json_body().get("by") or "slot").lower()
        if by == "slot":
            system.sort_by_slot()
        elif by == "time":
            system.sort_by_time()
        else:
            raise BadRequest("by must be 'slot' or 'time'")
        return jsonify(system.state())

    @app.post("/api/reverse")
    def api_reverse() -> Response:
        system.reverse()
        return jsonify(system.state())

    @app.post("/api/reset")
    def api_reset() -> Response:
        system.reset()
        return jsonify(system.state())

    return app


def main() -> None:
    cfg = SmartParkConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    app = create_app(cfg)
    logger.info("SmartPark listening on %s:%d (capacity %d)", cfg.host, cfg.port, cfg.capacity)
    app.run(host=cfg.host, port=cfg.port, debug=cfg.debug)


if __name__ == "__main__":
    main()
