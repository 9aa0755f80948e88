"""
Cron router — periodic jobs, triggered by the scheduler.

  GET|POST /cron/deletion-reminders   — grace-period reminders and deletions
  GET|POST /cron/nurture              — day 3 / 7 / 14 account e-mails

Authorization: Bearer <CRON_SECRET>. Per-item failures are reported in
the response body; the job itself still answers 200.
"""

from fastapi import APIRouter, Depends

from pagesmith.auth.dependencies import require_cron_secret
from pagesmith.routers.deps import DbSession, MailerDep, StorageDep
from pagesmith.schemas.billing import NurtureReport, ReminderReport
from pagesmith.services import retention

router = APIRouter(tags=["Cron"], dependencies=[Depends(require_cron_secret)])


@router.api_route(
    "/deletion-reminders",
    methods=["GET", "POST"],
    response_model=ReminderReport,
    summary="Send deletion reminders and purge expired projects",
)
async def deletion_reminders(session: DbSession, mailer: MailerDep, storage: StorageDep) -> dict:
    return await retention.run_deletion_reminders(session, mailer, storage)


@router.api_route(
    "/nurture",
    methods=["GET", "POST"],
    response_model=NurtureReport,
    summary="Send nurture e-mails",
)
async def nurture(session: DbSession, mailer: MailerDep) -> dict:
    return await retention.run_nurture(session, mailer)
