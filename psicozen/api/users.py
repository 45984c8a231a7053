"""Personal data routes (LGPD Art. 18) for the current user and organization."""

from fastapi import APIRouter

from ..core.dependencies import OrgContextDep, SessionDep
from ..models import utcnow
from ..schemas.reports import DataOperationResponse, UserDataExportResponse
from ..services.submissions import SubmissionService

router = APIRouter(prefix="/users/me", tags=["users"])


@router.get("/data-export", response_model=UserDataExportResponse)
async def export_my_data(
    session: SessionDep,
    current_user: OrgContextDep,
) -> UserDataExportResponse:
    """Profile and every check-in, machine readable."""
    data = await SubmissionService(session).export_user_data(
        current_user.id, current_user.organization_id
    )
    return UserDataExportResponse.model_validate(data)


@router.post("/data-anonymize", response_model=DataOperationResponse)
async def anonymize_my_data(
    session: SessionDep,
    current_user: OrgContextDep,
) -> DataOperationResponse:
    """Irreversible: check-ins become anonymous and lose their comments."""
    count = await SubmissionService(session).anonymize_user_data(
        current_user.id, current_user.organization_id
    )
    return DataOperationResponse(
        affected_submissions=count,
        message="Dados do usuário anonimizados com sucesso",
        timestamp=utcnow(),
    )


@router.delete("/data", response_model=DataOperationResponse)
async def delete_my_data(
    session: SessionDep,
    current_user: OrgContextDep,
) -> DataOperationResponse:
    """Irreversible: check-ins and the alerts they raised are deleted."""
    count = await SubmissionService(session).delete_user_data(
        current_user.id, current_user.organization_id
    )
    return DataOperationResponse(
        affected_submissions=count,
        message="Dados do usuário excluídos permanentemente",
        timestamp=utcnow(),
    )
