"""Campaign admin endpoints.

Create and update restart the campaign's automation; delete stops it.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from academy.campaigns.automation import CampaignAutomation
from academy.campaigns.schemas import (
    CampaignAnalyticsResponse,
    CampaignCreateRequest,
    CampaignFromTemplateRequest,
    CampaignListResponse,
    CampaignMessageResponse,
    CampaignMessagesResponse,
    CampaignResponse,
    CampaignRunResponse,
    CampaignTemplateResponse,
    CampaignTemplatesResponse,
    CampaignUpdateRequest,
)
from academy.campaigns.service import create_campaign_from_template, get_campaign_analytics
from academy.campaigns.templates import CAMPAIGN_TEMPLATES
from academy.db.models import Campaign
from academy.dependencies import get_automation, get_db
from academy.storage import AcademyRepository

router = APIRouter(prefix="/api/v1", tags=["Campaigns"])


def _to_response(campaign: Campaign, automation: CampaignAutomation) -> CampaignResponse:
    response = CampaignResponse.model_validate(campaign)
    response.scheduled = campaign.id in automation.running_campaign_ids
    return response


@router.get("/campaigns", response_model=CampaignListResponse)
async def list_campaigns(
    status: str | None = Query(None),
    type: str | None = Query(None),  # noqa: A002
    db: AsyncSession = Depends(get_db),
    automation: CampaignAutomation = Depends(get_automation),
):
    campaigns = await AcademyRepository(db).get_campaigns(status=status, type=type)
    return CampaignListResponse(
        campaigns=[_to_response(c, automation) for c in campaigns],
        total=len(campaigns),
    )


@router.get("/campaigns/templates", response_model=CampaignTemplatesResponse)
async def list_campaign_templates():
    """Predefined automated campaigns."""
    return CampaignTemplatesResponse(templates=[
        CampaignTemplateResponse(
            key=key,
            name=t["name"],
            type=t["type"],
            message_template=t["message_template"],
            automation_rules=t["automation_rules"],
        )
        for key, t in CAMPAIGN_TEMPLATES.items()
    ])


@router.post("/campaigns", response_model=CampaignResponse, status_code=201)
async def create_campaign(
    body: CampaignCreateRequest,
    db: AsyncSession = Depends(get_db),
    automation: CampaignAutomation = Depends(get_automation),
):
    campaign = await AcademyRepository(db).create_campaign(body.model_dump())
    await db.commit()
    await automation.restart(campaign.id)
    return _to_response(campaign, automation)


@router.post("/campaigns/from-template", response_model=CampaignResponse, status_code=201)
async def create_from_template(
    body: CampaignFromTemplateRequest,
    db: AsyncSession = Depends(get_db),
    automation: CampaignAutomation = Depends(get_automation),
):
    campaign = await create_campaign_from_template(AcademyRepository(db), body.template, body.overrides)
    await db.commit()
    await automation.restart(campaign.id)
    return _to_response(campaign, automation)


@router.get("/campaigns/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(
    campaign_id: int,
    db: AsyncSession = Depends(get_db),
    automation: CampaignAutomation = Depends(get_automation),
):
    campaign = await AcademyRepository(db).get_campaign(campaign_id)
    if campaign is None:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return _to_response(campaign, automation)


@router.patch("/campaigns/{campaign_id}", response_model=CampaignResponse)
async def update_campaign(
    campaign_id: int,
    body: CampaignUpdateRequest,
    db: AsyncSession = Depends(get_db),
    automation: CampaignAutomation = Depends(get_automation),
):
    campaign = await AcademyRepository(db).update_campaign(campaign_id, body.model_dump(exclude_unset=True))
    if campaign is None:
        raise HTTPException(status_code=404, detail="Campaign not found")
    await db.commit()
    await automation.restart(campaign_id)
    return _to_response(campaign, automation)


@router.delete("/campaigns/{campaign_id}", status_code=204)
async def delete_campaign(
    campaign_id: int,
    db: AsyncSession = Depends(get_db),
    automation: CampaignAutomation = Depends(get_automation),
):
    automation.stop(campaign_id)
    if not await AcademyRepository(db).delete_campaign(campaign_id):
        raise HTTPException(status_code=404, detail="Campaign not found")
    await db.commit()


@router.post("/campaigns/{campaign_id}/run", response_model=CampaignRunResponse)
async def run_campaign(
    campaign_id: int,
    automation: CampaignAutomation = Depends(get_automation),
):
    """Run one pass of the campaign's automation rule immediately."""
    matched = await automation.run_once(campaign_id)
    return CampaignRunResponse(campaign_id=campaign_id, matched=matched)


@router.get("/campaigns/{campaign_id}/analytics", response_model=CampaignAnalyticsResponse)
async def campaign_analytics(campaign_id: int, db: AsyncSession = Depends(get_db)):
    analytics = await get_campaign_analytics(AcademyRepository(db), campaign_id)
    return CampaignAnalyticsResponse(campaign_id=campaign_id, **analytics)


@router.get("/campaigns/{campaign_id}/messages", response_model=CampaignMessagesResponse)
async def campaign_messages(
    campaign_id: int,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    repo = AcademyRepository(db)
    if await repo.get_campaign(campaign_id) is None:
        raise HTTPException(status_code=404, detail="Campaign not found")
    messages = await repo.get_campaign_messages(campaign_id, limit=limit)
    return CampaignMessagesResponse(messages=[CampaignMessageResponse.model_validate(m) for m in messages])
