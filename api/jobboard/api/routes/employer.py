from fastapi import APIRouter, Depends, HTTPException, Query, status

from jobboard.core.config import Settings, get_settings
from jobboard.core.tokens import TokenConfigurationError, TokenError
from jobboard.schemas.employers import (
    EmployerConnectOut,
    EmployerDecisionRequest,
    EmployerPortalOut,
    EmployerSetupOut,
    EmployerSignupOut,
    EmployerSignupRequest,
)
from jobboard.services import employer_portal
from jobboard.services.events import WorkflowEventError, get_event_client
from jobboard.services.repository import (
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    get_repository,
)

router = APIRouter()


@router.get("/candidates", response_model=EmployerPortalOut)
async def get_candidates(
    token: str = Query(min_length=1),
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> EmployerPortalOut:
    try:
        result = await employer_portal.get_job_with_applications(
            repository,
            token=token,
            secret=settings.token_signing_secret,
        )
    except TokenConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return EmployerPortalOut(**result)


@router.post("/applications/{application_id}/connect", response_model=EmployerConnectOut)
async def connect_application(
    application_id: str,
    payload: EmployerDecisionRequest,
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> EmployerConnectOut:
    try:
        result = await employer_portal.connect(
            repository,
            token=payload.token,
            secret=settings.token_signing_secret,
            application_id=application_id,
        )
    except TokenConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except TokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except RepositoryForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return EmployerConnectOut(**result)


@router.post("/applications/{application_id}/pass", status_code=status.HTTP_204_NO_CONTENT)
async def pass_application(
    application_id: str,
    payload: EmployerDecisionRequest,
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> None:
    try:
        await employer_portal.pass_application(
            repository,
            token=payload.token,
            secret=settings.token_signing_secret,
            application_id=application_id,
        )
    except TokenConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except TokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except RepositoryForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/setup", response_model=EmployerSetupOut | None)
async def get_setup(
    token: str = Query(min_length=1),
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> EmployerSetupOut | None:
    try:
        result = await employer_portal.get_sender_for_setup(
            repository,
            token=token,
            secret=settings.token_signing_secret,
        )
    except TokenConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return EmployerSetupOut(**result) if result else None


@router.post("/signup", response_model=EmployerSignupOut)
async def signup(
    payload: EmployerSignupRequest,
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
    events=Depends(get_event_client),
) -> EmployerSignupOut:
    try:
        result = await employer_portal.create_from_signup(
            repository,
            events,
            token=payload.token,
            secret=settings.token_signing_secret,
            name=payload.name,
            email=payload.email,
            company=payload.company,
            role=payload.role,
            website=payload.website,
        )
    except TokenConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except TokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except WorkflowEventError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return EmployerSignupOut(**result)
