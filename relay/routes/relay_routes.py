"""Relay action endpoint.

Every relay operation goes through a single entry point, /api, selected by
the `action` query parameter. GET requests carry their fields in the query
string, POST requests in a multipart or urlencoded form body.
"""

from typing import Awaitable, Callable, Dict

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.datastructures import UploadFile

from common.logging_config import get_logger
from relay.auth import require_api_key
from relay.exceptions import MethodNotAllowedError, MissingParametersError, UnknownActionError
from relay.protocol import RelayProtocolHandler
from relay.schemas import (
    CreateSessionResponse,
    MetaResponse,
    OkResponse,
    ReadyResponse,
    StatusResponse,
)

logger = get_logger(__name__)

router = APIRouter(tags=["Relay"])

POST_ONLY_ACTIONS = {"upload_chunk", "confirm_chunk"}


def get_handler(request: Request) -> RelayProtocolHandler:
    """Dependency to get the protocol handler built by the app factory."""
    return request.app.state.handler


async def _collect_params(request: Request) -> dict:
    params = dict(request.query_params)
    params.pop("action", None)
    if request.method == "POST":
        form = await request.form()
        for key, value in form.items():
            params[key] = value
    return params


async def _create_session(handler: RelayProtocolHandler, params: dict):
    result = await run_in_threadpool(handler.create_session)
    return CreateSessionResponse(session_id=result.session_id, chunk_size=result.chunk_size)


async def _ready(handler: RelayProtocolHandler, params: dict):
    admission = await run_in_threadpool(handler.ready, params.get("session_id"))
    return ReadyResponse(ok=admission.admitted, reason=admission.reason)


async def _upload_chunk(handler: RelayProtocolHandler, params: dict):
    upload = params.get("chunk")
    if not isinstance(upload, UploadFile):
        raise MissingParametersError("Missing parameter: chunk")
    data = await upload.read()
    await run_in_threadpool(
        handler.upload_chunk,
        params.get("session_id"),
        params.get("chunk_index"),
        params.get("total_chunks"),
        params.get("file_name"),
        data,
    )
    return OkResponse()


async def _get_meta(handler: RelayProtocolHandler, params: dict):
    metadata = await run_in_threadpool(handler.get_meta, params.get("session_id"))
    return MetaResponse(
        file_name=metadata.file_name,
        total_chunks=metadata.total_chunks,
        chunk_size=metadata.chunk_size,
    )


async def _get_chunk(handler: RelayProtocolHandler, params: dict):
    size, pieces = await run_in_threadpool(
        handler.get_chunk, params.get("session_id"), params.get("chunk_index")
    )
    return StreamingResponse(
        pieces,
        media_type="application/octet-stream",
        headers={"Content-Length": str(size)},
    )


async def _confirm_chunk(handler: RelayProtocolHandler, params: dict):
    await run_in_threadpool(
        handler.confirm_chunk, params.get("session_id"), params.get("chunk_index")
    )
    return OkResponse()


async def _status(handler: RelayProtocolHandler, params: dict):
    session_status = await run_in_threadpool(handler.session_status, params.get("session_id"))
    return StatusResponse(state=session_status.state.value, usage_bytes=session_status.usage_bytes)


ACTIONS: Dict[str, Callable[[RelayProtocolHandler, dict], Awaitable]] = {
    "create_session": _create_session,
    "ready": _ready,
    "upload_chunk": _upload_chunk,
    "get_meta": _get_meta,
    "get_chunk": _get_chunk,
    "confirm_chunk": _confirm_chunk,
    "status": _status,
}


@router.api_route("/api", methods=["GET", "POST"], dependencies=[Depends(require_api_key)])
async def relay_action(
    request: Request,
    action: str = Query(None, description="Relay operation to run"),
    handler: RelayProtocolHandler = Depends(get_handler)
):
    """
    Run one relay action.

    Parameters:
        - action: create_session | ready | upload_chunk | get_meta | get_chunk | confirm_chunk | status
        - session_id, chunk_index, total_chunks, file_name, chunk: per action
        - Authorization header: Bearer <api_key> (unless auth is disabled)

    Returns:
        - JSON {ok: true, ...} or, for get_chunk, the raw chunk bytes

    Raises:
        - 400: Unknown action, missing or malformed fields, unsafe session id
        - 401: Invalid or missing API key
        - 404: Unknown session, chunk or metadata
        - 405: upload_chunk / confirm_chunk sent as GET
        - 500: Storage failure
        - 507: Session directory could not be allocated
    """
    action_fn = ACTIONS.get(action)
    if action_fn is None:
        raise UnknownActionError("Unknown action")

    if action in POST_ONLY_ACTIONS and request.method != "POST":
        raise MethodNotAllowedError(f"{action} requires POST")

    params = await _collect_params(request)
    result = await action_fn(handler, params)

    if isinstance(result, StreamingResponse):
        return result
    return JSONResponse(content=result.model_dump(exclude_none=True))
