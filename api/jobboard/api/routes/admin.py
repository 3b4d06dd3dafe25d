import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from jobboard.core.security import get_admin_principal
from jobboard.schemas.applications import ApplicationOut
from jobboard.schemas.employers import EmployerOut, EmployerStatus
from jobboard.schemas.messages import (
    InboundMessageOut,
    InboundMessageStatus,
    InboundMessageStatusRequest,
    SenderOut,
    SenderStatus,
    SenderStatusRequest,
    SenderUpdateRequest,
)
from jobboard.schemas.submissions import (
    SubmissionDenyRequest,
    SubmissionOut,
    SubmissionParsedRequest,
    SubmissionStatus,
)
from jobboard.services import employer_portal, submissions
from jobboard.services.events import WorkflowEventError, get_event_client
from jobboard.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# Submissions


@router.get("/submissions", response_model=list[SubmissionOut])
async def list_submissions(
    submission_status: SubmissionStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> list[SubmissionOut]:
    try:
        rows = await repository.list_submissions(status=submission_status, limit=limit, offset=offset)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [SubmissionOut(**row) for row in rows]


@router.get("/submissions/{submission_id}", response_model=SubmissionOut)
async def get_submission(
    submission_id: str,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> SubmissionOut:
    try:
        row = await repository.get_submission(submission_id=submission_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
    return SubmissionOut(**row)


@router.patch("/submissions/{submission_id}/parsed", response_model=SubmissionOut)
async def edit_parsed_submission(
    submission_id: str,
    payload: SubmissionParsedRequest,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> SubmissionOut:
    try:
        row = await repository.admin_update_parsed_submission(
            submission_id=submission_id,
            parsed_job=payload.parsed_job.model_dump(),
        )
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return SubmissionOut(**row)


@router.post("/submissions/{submission_id}/approve", status_code=status.HTTP_202_ACCEPTED)
async def approve_submission(
    submission_id: str,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
    events=Depends(get_event_client),
) -> dict[str, str]:
    try:
        await submissions.approve_from_ui(
            repository,
            events,
            submission_id=submission_id,
            approved_by=principal.email or principal.subject,
        )
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except WorkflowEventError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return {"status": "accepted"}


@router.post("/submissions/{submission_id}/deny", status_code=status.HTTP_202_ACCEPTED)
async def deny_submission(
    submission_id: str,
    payload: SubmissionDenyRequest,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
    events=Depends(get_event_client),
) -> dict[str, str]:
    try:
        await submissions.deny_from_ui(repository, events, submission_id=submission_id, reason=payload.reason)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except WorkflowEventError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return {"status": "accepted"}


@router.get("/submissions/{submission_id}/applications", response_model=list[ApplicationOut])
async def list_submission_applications(
    submission_id: str,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> list[ApplicationOut]:
    try:
        rows = await repository.list_applications_for_job(job_submission_id=submission_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [ApplicationOut(**row) for row in rows]


# Employers


@router.get("/employers", response_model=list[EmployerOut])
async def list_employers(
    employer_status: EmployerStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> list[EmployerOut]:
    try:
        rows = await repository.list_employers(status=employer_status, limit=limit, offset=offset)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [EmployerOut(**row) for row in rows]


@router.post("/employers/{employer_id}/approve", response_model=EmployerOut)
async def approve_employer(
    employer_id: str,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
    events=Depends(get_event_client),
) -> EmployerOut:
    try:
        row = await employer_portal.approve_employer(
            repository,
            events,
            employer_id=employer_id,
            approved_by=principal.email or principal.subject,
        )
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except WorkflowEventError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return EmployerOut(**row)


@router.post("/employers/{employer_id}/reject", response_model=EmployerOut)
async def reject_employer(
    employer_id: str,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> EmployerOut:
    try:
        row = await repository.reject_employer(employer_id=employer_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    logger.info("employer rejected employer_id=%s admin=%s", employer_id, principal.email)
    return EmployerOut(**row)


@router.delete("/employers/{employer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employer(
    employer_id: str,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> None:
    try:
        await repository.delete_employer(employer_id=employer_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


# Senders


@router.get("/senders", response_model=list[SenderOut])
async def list_senders(
    sender_status: SenderStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> list[SenderOut]:
    try:
        rows = await repository.list_senders(status=sender_status, limit=limit, offset=offset)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [SenderOut(**row) for row in rows]


@router.patch("/senders/{sender_id}", response_model=SenderOut)
async def update_sender(
    sender_id: str,
    payload: SenderUpdateRequest,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> SenderOut:
    try:
        row = await repository.update_sender(sender_id=sender_id, fields=payload.model_dump(exclude_unset=True))
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return SenderOut(**row)


@router.patch("/senders/{sender_id}/status", response_model=SenderOut)
async def update_sender_status(
    sender_id: str,
    payload: SenderStatusRequest,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> SenderOut:
    try:
        row = await repository.update_sender_status(sender_id=sender_id, status=payload.status)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    logger.info("sender status changed sender_id=%s status=%s admin=%s", sender_id, payload.status, principal.email)
    return SenderOut(**row)


# Inbound messages


@router.get("/messages", response_model=list[InboundMessageOut])
async def list_inbound_messages(
    message_status: InboundMessageStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500),
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> list[InboundMessageOut]:
    try:
        rows = await repository.list_inbound_messages(status=message_status, limit=limit)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [InboundMessageOut(**row) for row in rows]


@router.patch("/messages/{message_id}/status", response_model=InboundMessageOut)
async def update_inbound_message_status(
    message_id: str,
    payload: InboundMessageStatusRequest,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> InboundMessageOut:
    try:
        row = await repository.update_inbound_message_status(message_id=message_id, status=payload.status)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return InboundMessageOut(**row)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_inbound_message(
    message_id: str,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> None:
    try:
        await repository.delete_inbound_message(message_id=message_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
