"""FastAPI routes for interview session control."""
from __future__ import annotations

import asyncio
import re
from typing import List

from fastapi import APIRouter, HTTPException, Request, Response

from api.live import AdapterFactory, InMemoryLiveSessions, LiveSession, build_orchestrator, close_transcriber, run_session
from api.schemas import EventView, QuestionView, SessionResp, SignalResp, StartReq, StartResp
from interview_session import SessionEvent, SessionOrchestrator, SessionStateError
from observability import log_event
from question_source import QuestionSourceError
from session_reports import generate_result_pdf, load_report
from storage.models import EvaluationResult
from storage.results import get_result
from storage.sessions import get_session


router = APIRouter(prefix="/api/interview-sessions")

RECENT_EVENTS = 20


def _live_sessions(request: Request) -> InMemoryLiveSessions:
    return request.app.state.live_sessions


def _adapter_factory(request: Request) -> AdapterFactory:
    return request.app.state.adapter_factory


def _orchestrator(request: Request, session_id: str) -> SessionOrchestrator:
    try:
        return _live_sessions(request).get(session_id).orchestrator
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="session not running") from exc


def _event_views(events: List[SessionEvent]) -> List[EventView]:
    return [
        EventView(kind=evt.kind, phase=evt.phase, question_index=evt.question_index, payload=evt.payload, ts=evt.ts)
        for evt in events[-RECENT_EVENTS:]
    ]


def _safe_slug(value: str) -> str:  # Sanitize value for filenames
    slug = re.sub(r"[^A-Za-z0-9_-]+", "-", value).strip("-")
    return slug or "session"


@router.post("/start", response_model=StartResp, status_code=201)
async def start(req: StartReq, request: Request) -> StartResp:
    adapters = _adapter_factory(request)()
    orchestrator = build_orchestrator(adapters)
    try:
        session = await orchestrator.setup(req.role, req.difficulty, req.question_count, req.candidate_id)
    except QuestionSourceError as exc:
        await close_transcriber(adapters, req.candidate_id)
        raise HTTPException(status_code=503, detail=f"No interview questions available: {exc}") from exc

    live = LiveSession(orchestrator=orchestrator, adapters=adapters)
    registry = _live_sessions(request)
    registry.add(session.id, live)
    live.task = asyncio.create_task(run_session(live))
    live.task.add_done_callback(lambda _task: registry.delete(session.id))
    log_event("session_started", session.id, role=req.role.title, difficulty=req.difficulty, count=session.total_questions)

    return StartResp(
        session_id=session.id,
        status=session.status,
        phase=orchestrator.phase,
        questions=[
            QuestionView(
                id=question.id,
                text=question.text,
                question_type=question.question_type,
                time_limit_seconds=question.time_limit_seconds,
            )
            for question in orchestrator.questions
        ],
    )


@router.post("/{session_id}/done-speaking", response_model=SignalResp)
async def done_speaking(session_id: str, request: Request) -> SignalResp:
    orchestrator = _orchestrator(request, session_id)
    try:
        orchestrator.done_speaking()
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return SignalResp(session_id=session_id, phase=orchestrator.phase)


@router.post("/{session_id}/skip", response_model=SignalResp)
async def skip(session_id: str, request: Request) -> SignalResp:
    orchestrator = _orchestrator(request, session_id)
    try:
        orchestrator.skip()
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return SignalResp(session_id=session_id, phase=orchestrator.phase)


@router.post("/{session_id}/abort", response_model=SignalResp)
async def abort(session_id: str, request: Request) -> SignalResp:
    orchestrator = _orchestrator(request, session_id)
    orchestrator.abort()
    return SignalResp(session_id=session_id, phase=orchestrator.phase)


@router.get("/{session_id}", response_model=SessionResp)
async def fetch_session(session_id: str, request: Request) -> SessionResp:
    session = get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="session not found")
    live = _live_sessions(request).find(session_id)
    if live is None:
        return SessionResp(session=session, phase="done" if session.is_terminal else None)
    return SessionResp(
        session=session,
        phase=live.orchestrator.phase,
        live=True,
        amplitude=live.orchestrator.amplitude,
        events=_event_views(live.orchestrator.history),
    )


@router.get("/{session_id}/result", response_model=EvaluationResult)
def fetch_result(session_id: str) -> EvaluationResult:
    if get_session(session_id) is None:
        raise HTTPException(status_code=404, detail="session not found")
    result = get_result(session_id)
    if result is None:
        raise HTTPException(status_code=404, detail="result not available")
    return result


@router.get("/{session_id}/report.pdf")
def fetch_report_pdf(session_id: str) -> Response:
    report = load_report(session_id)
    if report is None:
        raise HTTPException(status_code=404, detail="report not available")
    payload = generate_result_pdf(report)
    filename = f"interview-{_safe_slug(report.session.role_title)}-{_safe_slug(session_id)}.pdf"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return Response(content=payload, media_type="application/pdf", headers=headers)
