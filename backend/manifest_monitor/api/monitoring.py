from typing import List

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse

from manifest_monitor.exceptions import InvalidURLError, SessionNotFoundError
from manifest_monitor.models import SegmentStatus, StartMonitoringRequest, StopMonitoringRequest
from manifest_monitor.services.manifest_monitor import manifest_monitor

router = APIRouter(tags=["monitoring"])


@router.post("/startMonitoring", response_class=PlainTextResponse)
async def start_monitoring(request: StartMonitoringRequest):
    """Start (or restart) a monitoring session."""
    try:
        await manifest_monitor.start_session(request.id, request.url)
    except InvalidURLError:
        raise HTTPException(status_code=400, detail="Invalid URL")

    return f"Monitoring started for {request.url}"


@router.post("/stopMonitoring", response_class=PlainTextResponse)
async def stop_monitoring(request: StopMonitoringRequest):
    """Stop a monitoring session. Unknown ids are not an error."""
    await manifest_monitor.stop_session(request.id)
    return f"Monitoring stopped for {request.id}"


@router.api_route("/startMonitoring", methods=["GET", "HEAD", "PUT", "PATCH", "DELETE"], include_in_schema=False)
@router.api_route("/stopMonitoring", methods=["GET", "HEAD", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def method_not_allowed():
    raise HTTPException(status_code=405, detail="Method not allowed", headers={"Allow": "POST"})


@router.get("/monitor", response_model=List[SegmentStatus])
async def get_monitoring_results(id: str = Query("")):
    """Current bounded segment history of a session, oldest first."""
    try:
        return await manifest_monitor.get_history(id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


@router.get("/monitor/{session_id}/events")
async def get_session_events(session_id: str, limit: int = Query(100, ge=1, le=1000)):
    """Recent event-log entries for an active session."""
    if not await manifest_monitor.has_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")

    events = await manifest_monitor.event_log.read_session_events(session_id, limit=limit)
    return {"session_id": session_id, "events": events, "count": len(events)}
