import inspect
import logging
import time
from utils.core.log import setup_logging
from flask import Flask, request, jsonify

from tools.equalize.equalize import (
    equalization_main,
    equalization_detail_main,
    wbs_reference_main,
    proposals_main,
    proposal_detail_main,
    item_tag_main,
    item_hidden_main,
)

app = Flask(__name__)
setup_logging()
logger = logging.getLogger("EqualizerBE")

"""
API for the Equalizer backend

pip install flask
"""


_LAST = {"status": None, "t": 0.0}
GET_INFO_EVERY_SEC = 300


def _should_log_get(current_status: str) -> bool:
    now = time.monotonic()
    if _LAST["status"] != current_status or now - _LAST["t"] >= GET_INFO_EVERY_SEC:
        _LAST["status"] = current_status
        _LAST["t"] = now
        return True
    return False


def handle(tool_func=None, *args, **kwargs):
    """
    Universal wrapper for all endpoint tools.

    - Expects the caller (each route) to pass ALL parameters required
      by the tool function through *args / **kwargs.
    - Builds the standard response envelope
      (userId / status / error / tokens / toolData).
    - Leaves whatever status the tool returns, or falls back to "done"/"error".
    """
    req_json = kwargs.pop("request_body", {})
    remote_ip = request.remote_addr
    user_id = req_json.get("userId", "")
    tool_name = tool_func.__name__ if tool_func else "unknown_tool"
    package_id = req_json.get("packageId", "unknown")
    user_name = req_json.get("userName", "")
    method = request.method

    context = {
        "tool_name": tool_name,
        "ip_address": remote_ip,
        "package_id": package_id,
        "request_type": method,
        "user_name": user_name,
    }
    logger = logging.LoggerAdapter(logging.getLogger("EqualizerBE"), context)

    if method == "POST":
        logger.info("Process started")
    elif method not in ("GET",):
        logger.info("Invoke via %s: %s (user=%s)", method, tool_name, user_id)

    response = {
        "userId": user_id,  # always echo back
        "status": "",
        "error": "",
        "tokens": 0,
        "toolData": {},
    }

    call_kwargs = dict(kwargs)
    sig = inspect.signature(tool_func) if tool_func else None
    if sig:
        if "remote_ip" in sig.parameters:
            call_kwargs["remote_ip"] = remote_ip
        if "request_method" in sig.parameters:
            call_kwargs["request_method"] = method

    try:
        result = tool_func(*args, **call_kwargs)
    except Exception as exc:
        logger.exception(f"{tool_name} crashed")
        response["status"] = "error"
        response["error"] = str(exc)
        return jsonify(response), 500

    # Tools return {"status": ..., "error": ...?, ...payload}; the rest is toolData
    status_code = 200
    if isinstance(result, dict):
        response["tokens"] = result.pop("tokens", 0)
        response["status"] = result.pop("status", "done")

        if "error" in result:
            response["error"] = result.pop("error")
            if result.get("notFound"):
                status_code = 404
        else:
            response["toolData"] = result
    else:
        response["status"] = "done" if result else "error"
        response["toolData"] = result

    if method == "GET":
        current_status = response.get("status") or (
            "error" if response.get("error") else "done"
        )
        if _should_log_get(current_status):
            logger.info("Status check: %s", current_status)

    return jsonify(response), status_code


def bad_request(msg: str, user_id: str = ""):
    envelope = {
        "userId": user_id,
        "status": "error",
        "error": msg,
        "tokens": 0,
        "toolData": {},
    }
    return jsonify(envelope), 400


def get_payload() -> dict:
    """
    Return the request payload as a dict.
    - POST   – accept plaintext JSON.
    - GET    – flat query params.
    """
    if request.method == "GET":
        return request.args.to_dict(flat=True) if request.args else {}

    return request.get_json(force=True, silent=True) or {}


def _parse_bool(value) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no"):
        return False
    return None


def ping_status_tool(
    package_id: str | None = None,
    request_method: str | None = None,
    remote_ip: str | None = None,
    user_name: str | None = None,
) -> dict:
    """
    Healthcheck tool.
    - Returns {"status": "pong"} (wrapped by handle()).
    - Logs an INFO line into activity.log.
    """
    from utils.core.log import pid_tool_logger, get_logger, set_logger

    base_logger = pid_tool_logger(package_id=package_id or "SYSTEM", tool_name="ping")
    set_logger(
        base_logger,
        tool_name="ping",
        tool_base="ping",
        package_id=package_id or "unknown",
        ip_address=remote_ip or "no_ip",
        request_type=request_method or "N/A",
        user_name=user_name or "Anonymous",
    )
    get_logger().info("Ping received; replying with pong")
    return {"status": "pong"}


@app.route("/ping", methods=["GET", "POST"])
def PING():
    data = get_payload()
    return handle(
        tool_func=ping_status_tool,
        request_body=data,
        package_id=data.get("packageId"),
        user_name=data.get("userName") or data.get("user"),
    )


@app.route("/equalization", methods=["GET"])
def EQUALIZATION():
    """
    Equalization table: aggregated WBS tree with one value cell per proposal.
    """
    data = get_payload()
    return handle(
        tool_func=equalization_main,
        request_body=data,
        package_id=data.get("packageId"),
        user_name=data.get("userName", ""),
    )


@app.route("/equalization/<wbs_id>", methods=["GET"])
def EQUALIZATION_DETAIL(wbs_id: str):
    """
    Drill-down of one WBS node: its own linked items per proposal.
    """
    data = get_payload()
    return handle(
        tool_func=equalization_detail_main,
        request_body=data,
        wbs_id=wbs_id,
        package_id=data.get("packageId"),
        user_name=data.get("userName", ""),
    )


@app.route("/wbs", methods=["GET"])
def WBS_REFERENCE():
    data = get_payload()
    return handle(
        tool_func=wbs_reference_main,
        request_body=data,
        package_id=data.get("packageId"),
        user_name=data.get("userName", ""),
    )


@app.route("/proposals", methods=["GET"])
def PROPOSALS():
    data = get_payload()
    return handle(
        tool_func=proposals_main,
        request_body=data,
        package_id=data.get("packageId"),
        user_name=data.get("userName", ""),
    )


@app.route("/proposals/<proposal_id>", methods=["GET"])
def PROPOSAL_DETAIL(proposal_id: str):
    data = get_payload()
    return handle(
        tool_func=proposal_detail_main,
        request_body=data,
        proposal_id=proposal_id,
        package_id=data.get("packageId"),
        user_name=data.get("userName", ""),
    )


@app.route("/proposals/items/<item_id>/tag", methods=["POST"])
def ITEM_TAG(item_id: str):
    """
    Set or clear (null / empty) the classification tag of a proposal item.
    """
    data = get_payload()
    td = data.get("toolData", {})
    if "tag" not in td:
        return bad_request("toolData.tag is required (null clears it)", data.get("userId", ""))

    return handle(
        tool_func=item_tag_main,
        request_body=data,
        item_id=item_id,
        tag=td.get("tag"),
        package_id=data.get("packageId"),
        user_name=data.get("userName", ""),
    )


@app.route("/proposals/items/<item_id>/hidden", methods=["POST"])
def ITEM_HIDDEN(item_id: str):
    """
    Hide a proposal item from (or restore it to) the equalization totals.
    """
    data = get_payload()
    td = data.get("toolData", {})
    hidden = _parse_bool(td.get("hidden"))
    if hidden is None:
        return bad_request("toolData.hidden must be a boolean", data.get("userId", ""))

    return handle(
        tool_func=item_hidden_main,
        request_body=data,
        item_id=item_id,
        hidden=hidden,
        package_id=data.get("packageId"),
        user_name=data.get("userName", ""),
    )


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000)
