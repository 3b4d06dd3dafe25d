from fastapi import APIRouter, Depends, HTTPException, Query, status

from jobboard.core.config import Settings, get_settings
from jobboard.core.security import get_machine_principal
from jobboard.core.tokens import TokenConfigurationError
from jobboard.schemas.applications import (
    ApplicationCountOut,
    ApplicationCreateOut,
    ApplicationOut,
    InternalApplicationCreateRequest,
)
from jobboard.schemas.employers import EmployerOut
from jobboard.schemas.messages import InboundSmsOut, InboundSmsRequest, SenderOut, SenderUpsertRequest
from jobboard.schemas.submissions import (
    MagicLinksOut,
    SubmissionApproveRequest,
    SubmissionCloseOut,
    SubmissionCloseRequest,
    SubmissionCreateRequest,
    SubmissionDenyRequest,
    SubmissionOut,
    SubmissionParsedRequest,
)
from jobboard.services import applications, inbound_sms, submissions
from jobboard.services.events import WorkflowEventError, get_event_client
from jobboard.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


def _require(principal, scope: str) -> None:
    try:
        principal.require_scopes({scope})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc


@router.post("/webhooks/sms", response_model=InboundSmsOut)
async def receive_sms(
    payload: InboundSmsRequest,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
    events=Depends(get_event_client),
) -> InboundSmsOut:
    _require(principal, "webhooks:write")
    try:
        result = await inbound_sms.handle_inbound_sms(
            repository,
            events,
            phone=payload.phone,
            body=payload.body,
            message_sid=payload.message_sid,
        )
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except WorkflowEventError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return InboundSmsOut(**result)


# Senders


@router.post("/senders", response_model=SenderOut)
async def get_or_create_sender(
    payload: SenderUpsertRequest,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> SenderOut:
    _require(principal, "workflow:write")
    try:
        row = await repository.get_or_create_sender(
            phone=payload.phone,
            name=payload.name,
            company=payload.company,
            email=payload.email,
        )
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return SenderOut(**row)


@router.get("/senders/by-phone", response_model=SenderOut | None)
async def get_sender_by_phone(
    phone: str = Query(min_length=3),
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> SenderOut | None:
    _require(principal, "workflow:write")
    try:
        row = await repository.get_sender_by_phone(phone=phone)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return SenderOut(**row) if row else None


@router.get("/senders/{sender_id}/open-submissions", response_model=list[SubmissionOut])
async def list_open_submissions(
    sender_id: str,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> list[SubmissionOut]:
    _require(principal, "workflow:write")
    try:
        rows = await repository.list_open_submissions_by_sender(sender_id=sender_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [SubmissionOut(**row) for row in rows]


@router.get("/senders/{sender_id}/employer", response_model=EmployerOut | None)
async def get_employer_by_sender(
    sender_id: str,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> EmployerOut | None:
    _require(principal, "workflow:write")
    try:
        row = await repository.get_employer_by_sender(sender_id=sender_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return EmployerOut(**row) if row else None


# Submissions


@router.post("/submissions", response_model=SubmissionOut, status_code=status.HTTP_201_CREATED)
async def create_submission(
    payload: SubmissionCreateRequest,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> SubmissionOut:
    _require(principal, "workflow:write")
    try:
        row = await repository.create_submission(
            source=payload.source,
            raw_content=payload.raw_content,
            sender_id=payload.sender_id,
        )
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return SubmissionOut(**row)


@router.get("/submissions/{submission_id}", response_model=SubmissionOut)
async def get_submission(
    submission_id: str,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> SubmissionOut:
    _require(principal, "workflow:write")
    try:
        row = await repository.get_submission(submission_id=submission_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
    return SubmissionOut(**row)


@router.patch("/submissions/{submission_id}/parsed", response_model=SubmissionOut)
async def update_submission_parsed(
    submission_id: str,
    payload: SubmissionParsedRequest,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> SubmissionOut:
    _require(principal, "workflow:write")
    try:
        row = await repository.update_submission_parsed(
            submission_id=submission_id,
            parsed_job=payload.parsed_job.model_dump(),
        )
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return SubmissionOut(**row)


@router.post("/submissions/{submission_id}/approve", response_model=SubmissionOut)
async def approve_submission(
    submission_id: str,
    payload: SubmissionApproveRequest,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> SubmissionOut:
    _require(principal, "workflow:write")
    try:
        row = await repository.approve_submission(submission_id=submission_id, approved_by=payload.approved_by)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return SubmissionOut(**row)


@router.post("/submissions/{submission_id}/deny", response_model=SubmissionOut)
async def deny_submission(
    submission_id: str,
    payload: SubmissionDenyRequest,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> SubmissionOut:
    _require(principal, "workflow:write")
    try:
        row = await repository.deny_submission(submission_id=submission_id, reason=payload.reason)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return SubmissionOut(**row)


@router.post("/submissions/{submission_id}/close", response_model=SubmissionCloseOut)
async def close_submission(
    submission_id: str,
    payload: SubmissionCloseRequest,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> SubmissionCloseOut:
    _require(principal, "workflow:write")
    try:
        result = await repository.close_submission(submission_id=submission_id, reason=payload.reason)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return SubmissionCloseOut(**result)


@router.post("/submissions/{submission_id}/magic-links", response_model=MagicLinksOut)
async def issue_magic_links(
    submission_id: str,
    principal=Depends(get_machine_principal),
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> MagicLinksOut:
    _require(principal, "workflow:write")
    try:
        result = await submissions.issue_links(repository, settings, submission_id=submission_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except (RepositoryUnavailableError, TokenConfigurationError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return MagicLinksOut(**result)


@router.get("/submissions/{submission_id}/applications", response_model=list[ApplicationOut])
async def list_applications(
    submission_id: str,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> list[ApplicationOut]:
    _require(principal, "workflow:write")
    try:
        rows = await repository.list_applications_for_job(job_submission_id=submission_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [ApplicationOut(**row) for row in rows]


@router.get("/submissions/{submission_id}/applications/count", response_model=ApplicationCountOut)
async def count_applications(
    submission_id: str,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> ApplicationCountOut:
    _require(principal, "workflow:write")
    try:
        count = await repository.count_applications(job_submission_id=submission_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ApplicationCountOut(count=count)


# Applications


@router.post("/applications", response_model=ApplicationCreateOut, status_code=status.HTTP_201_CREATED)
async def create_application(
    payload: InternalApplicationCreateRequest,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
    events=Depends(get_event_client),
) -> ApplicationCreateOut:
    _require(principal, "workflow:write")
    try:
        result = await applications.submit_application(
            repository,
            events,
            job_submission_id=payload.job_submission_id,
            seeker_profile_id=payload.seeker_profile_id,
            resume_id=payload.resume_id,
        )
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except WorkflowEventError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return ApplicationCreateOut(**result)


@router.get("/applications/{application_id}", response_model=ApplicationOut)
async def get_application(
    application_id: str,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> ApplicationOut:
    _require(principal, "workflow:write")
    try:
        row = await repository.get_application(application_id=application_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return ApplicationOut(**row)


@router.post("/applications/{application_id}/connected", response_model=ApplicationOut)
async def mark_connected(
    application_id: str,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> ApplicationOut:
    _require(principal, "workflow:write")
    try:
        row = await repository.mark_application_connected(application_id=application_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ApplicationOut(**row)


@router.post("/applications/{application_id}/passed", response_model=ApplicationOut)
async def mark_passed(
    application_id: str,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> ApplicationOut:
    _require(principal, "workflow:write")
    try:
        row = await repository.mark_application_passed(application_id=application_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ApplicationOut(**row)
