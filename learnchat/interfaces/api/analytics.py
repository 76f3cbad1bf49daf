"""Analytics routes — MCQ statistics and the responses report (admin only)."""

from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Response

from learnchat.application.services import analytics_service
from learnchat.application.services.tabular_codec import build_responses_report
from learnchat.core.exceptions import BusinessRuleViolationException, EntityNotFoundException
from learnchat.domain.schemas.analytics import MCQStats, OptionDistribution
from learnchat.domain.schemas.user import UserRead
from learnchat.interfaces.api.deps import require_admin
from learnchat.interfaces.api.users import XLSX_MEDIA_TYPE
from learnchat.interfaces.deps import Services, get_services

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


@router.get("/overall")
def overall(
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    responses = services.repo.list_responses()
    return {
        "total_responses": len(responses),
        "correct_responses": sum(1 for r in responses if r.is_correct),
        "accuracy_percent": analytics_service.overall_accuracy(responses),
    }


@router.get("/messages/{message_id}", response_model=MCQStats)
def message_stats(
    message_id: str,
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    return analytics_service.stats_for_message(services.repo.list_responses(), message_id)


@router.get("/messages/{message_id}/distribution", response_model=List[OptionDistribution])
def message_distribution(
    message_id: str,
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    message = services.repo.get_message(message_id, fresh=True)
    if message is None:
        raise EntityNotFoundException("Message not found", {"message_id": message_id})
    return analytics_service.distribution_for_message(message, services.repo.list_responses())


@router.get("/groups/{group_id}", response_model=MCQStats)
def group_stats(
    group_id: str,
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    return analytics_service.stats_for_group(services.repo.list_responses(), group_id)


@router.get("/report")
def download_report(
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    responses = services.repo.list_responses()
    if not responses:
        raise BusinessRuleViolationException("No responses to download")
    rows = analytics_service.report_rows(
        responses,
        services.repo.list_messages(),
        services.repo.list_groups(fresh=True),
    )
    filename = f"mcq_responses_{datetime.now(timezone.utc).date().isoformat()}.xlsx"
    return Response(
        content=build_responses_report(rows),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
