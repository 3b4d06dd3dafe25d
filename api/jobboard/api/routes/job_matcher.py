from fastapi import APIRouter, Depends, HTTPException, status

from jobboard.core.security import get_human_principal
from jobboard.schemas.search import JobMatcherSearchOut, JobMatcherSearchRequest
from jobboard.services import job_matcher
from jobboard.services.repository import RepositoryUnavailableError, get_repository
from jobboard.services.search import SearchConfigurationError, SearchRequestError, get_search_client

router = APIRouter()


@router.post("/search", response_model=JobMatcherSearchOut)
async def search(
    payload: JobMatcherSearchRequest,
    principal=Depends(get_human_principal),
    repository=Depends(get_repository),
    search_client=Depends(get_search_client),
) -> JobMatcherSearchOut:
    try:
        principal.require_scopes({"search:read"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        result = await job_matcher.search_jobs_for_user(
            repository,
            search_client,
            user_id=principal.subject,
            request=payload,
        )
    except (RepositoryUnavailableError, SearchConfigurationError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except SearchRequestError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return JobMatcherSearchOut(**result)
