"""Question-bank bulk upload routes: manual entry, CSV import and CSV export."""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel
from sqlmodel import Session

from gradebook.database import get_session
from gradebook.deps import RequestContext, get_context
from gradebook.models import Subject
from gradebook.schemas import Question, question_from_record
from gradebook.services.bulk_upload import BulkQuestionUpload
from gradebook.services.question_validator import validate_question

router = APIRouter()


def _get_subject(subject_id: Optional[int], session: Session, context: RequestContext) -> Optional[Subject]:
    """Resolve a selected subject within the caller's school; ``None`` when not selected."""
    if not subject_id:
        return None
    subject = session.get(Subject, subject_id)
    if not subject or subject.school_id != context.school_id:
        raise HTTPException(status_code=404, detail="Subject not found")
    return subject


# --- Request schemas ---


class ManualFormIn(BaseModel):
    subject_id: Optional[int] = None
    count: int = 5


class SubmitIn(BaseModel):
    subject_id: Optional[int] = None
    questions: List[Question]


class ExportIn(BaseModel):
    subject_id: Optional[int] = None
    question_ids: List[int]


class ValidateIn(BaseModel):
    question: Question


# 1) MANUAL ENTRY
@router.post("/bulk/manual")
def api_manual_form(
    payload: ManualFormIn = Body(...),
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    _get_subject(payload.subject_id, session, context)
    upload = BulkQuestionUpload(context)
    questions = upload.start_manual_entry(payload.subject_id, payload.count)
    return {
        "mode": upload.mode.value,
        "subject_id": upload.subject_id,
        "questions": [q.model_dump() for q in questions],
    }


# 2) CSV IMPORT PREVIEW
@router.post("/bulk/import")
async def api_import_csv(
    subject_id: Optional[int] = Form(None),
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    _get_subject(subject_id, session, context)
    content = (await file.read()).decode("utf-8-sig")

    upload = BulkQuestionUpload(context)
    imported = upload.load_csv(subject_id, content)
    return {
        "mode": upload.mode.value,
        "subject_id": upload.subject_id,
        "questions": [row.model_dump() for row in imported],
        "invalid_count": sum(1 for row in imported if not row.validation.is_valid),
    }


# 3) SUBMIT (manual entry or reviewed import)
@router.post("/bulk")
def api_submit_questions(
    payload: SubmitIn = Body(...),
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    _get_subject(payload.subject_id, session, context)
    upload = BulkQuestionUpload(context)
    upload.resume_entry(payload.subject_id, payload.questions)
    records = upload.submit(session)
    return {
        "status": "success",
        "inserted": len(records),
        "question_ids": [r.id for r in records],
    }


# 4) EXPORT PREVIEW
@router.get("/bulk/export")
def api_export_preview(
    subject_id: Optional[int] = Query(None),
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    _get_subject(subject_id, session, context)
    upload = BulkQuestionUpload(context)
    rows = upload.start_export(session, subject_id)
    return [
        {
            "id": row.id,
            "selected": row.id in upload.selected,
            "created_at": row.created_at,
            "question": question_from_record(row).model_dump(),
        }
        for row in rows
    ]


# 5) EXPORT DOWNLOAD
@router.post("/bulk/export")
def api_export_csv(
    payload: ExportIn = Body(...),
    session: Session = Depends(get_session),
    context: RequestContext = Depends(get_context),
):
    subject = _get_subject(payload.subject_id, session, context)
    upload = BulkQuestionUpload(context)
    upload.start_export(session, payload.subject_id)
    upload.select_all(False)
    known = {row.id for row in upload.export_rows}
    for question_id in set(payload.question_ids) & known:
        upload.toggle_selection(question_id)

    filename, content = upload.export(subject.name)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/validate")
def api_validate_question(payload: ValidateIn = Body(...)):
    return validate_question(payload.question)
