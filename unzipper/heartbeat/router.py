"""Heartbeat endpoint.

GET /last-emitted returns the unix time at which the worker last received
a job, or 503 when it has not received one since the process started.
"""

from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse

from unzipper.heartbeat.state import Heartbeat

NOT_EMITTED_MESSAGE = "Can not get lastEmittedTime"

router = APIRouter(tags=["heartbeat"])


def get_heartbeat(request: Request) -> Heartbeat:
    return request.app.state.heartbeat


@router.get(
    "/last-emitted",
    response_class=PlainTextResponse,
    summary="Last time a job was handed to this worker",
    description="Should respond unixtime with 200",
)
@router.get("/last-emitted/", include_in_schema=False)
async def last_emitted(request: Request) -> PlainTextResponse:
    timestamp = get_heartbeat(request).last_emitted()
    if timestamp is None:
        return PlainTextResponse(
            NOT_EMITTED_MESSAGE,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return PlainTextResponse(str(timestamp), status_code=status.HTTP_200_OK)
