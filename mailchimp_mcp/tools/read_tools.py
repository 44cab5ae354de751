"""Read-only Mailchimp tools."""

from typing import Any, Dict, Literal, Optional
from urllib.parse import urlencode

from pydantic import Field

from mailchimp_mcp.api.client import MailchimpClient
from mailchimp_mcp.tools.registry import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    EmailAddress,
    MailchimpId,
    NoInput,
    ToolInput,
    ToolSpec,
    subscriber_hash,
)

MemberStatus = Literal["subscribed", "unsubscribed", "cleaned", "pending", "transactional"]
CampaignStatus = Literal["save", "paused", "schedule", "sending", "sent"]


def _with_query(path: str, params: Dict[str, Any]) -> str:
    query = urlencode({k: v for k, v in params.items() if v is not None})
    return f"{path}?{query}" if query else path


class Pagination(ToolInput):
    count: Optional[int] = Field(
        default=None, ge=1, le=MAX_PAGE_SIZE,
        description="Number of records to return (default: 50, max: 1000)",
    )
    offset: Optional[int] = Field(
        default=None, ge=0,
        description="Number of records from a collection to skip (default: 0)",
    )


class AudienceInput(ToolInput):
    audience_id: MailchimpId = Field(alias="audienceId", description="The unique ID for the audience (list)")


class ListMembersInput(Pagination):
    audience_id: MailchimpId = Field(alias="audienceId", description="The unique ID for the audience (list)")
    status: Optional[MemberStatus] = Field(default=None, description="Filter by member status")


class MemberInput(ToolInput):
    audience_id: MailchimpId = Field(alias="audienceId", description="The unique ID for the audience (list)")
    email: EmailAddress = Field(description="The member's email address")


class ListCampaignsInput(Pagination):
    status: Optional[CampaignStatus] = Field(default=None, description="Filter by campaign status")
    since_send_time: Optional[str] = Field(
        default=None,
        description="Restrict response to campaigns sent after a set time (ISO 8601 format)",
    )


class CampaignInput(ToolInput):
    campaign_id: MailchimpId = Field(alias="campaignId", description="The unique ID for the campaign")


async def ping(client: MailchimpClient, params: NoInput) -> Any:
    return {"ok": True}


async def get_account(client: MailchimpClient, params: NoInput) -> Any:
    return await client.get("/")


async def list_audiences(client: MailchimpClient, params: Pagination) -> Any:
    return await client.get(_with_query("/lists", {
        "count": params.count or DEFAULT_PAGE_SIZE,
        "offset": params.offset,
    }))


async def get_audience(client: MailchimpClient, params: AudienceInput) -> Any:
    return await client.get(f"/lists/{params.audience_id}")


async def list_members(client: MailchimpClient, params: ListMembersInput) -> Any:
    return await client.get(_with_query(f"/lists/{params.audience_id}/members", {
        "status": params.status,
        "count": params.count or DEFAULT_PAGE_SIZE,
        "offset": params.offset,
    }))


async def get_member(client: MailchimpClient, params: MemberInput) -> Any:
    return await client.get(f"/lists/{params.audience_id}/members/{subscriber_hash(params.email)}")


async def list_campaigns(client: MailchimpClient, params: ListCampaignsInput) -> Any:
    return await client.get(_with_query("/campaigns", {
        "status": params.status,
        "since_send_time": params.since_send_time,
        "count": params.count or DEFAULT_PAGE_SIZE,
        "offset": params.offset,
    }))


async def get_campaign(client: MailchimpClient, params: CampaignInput) -> Any:
    return await client.get(f"/campaigns/{params.campaign_id}")


async def get_campaign_report(client: MailchimpClient, params: CampaignInput) -> Any:
    return await client.get(f"/reports/{params.campaign_id}")


READ_TOOLS = [
    ToolSpec(
        "mc_ping",
        "Test connection to Mailchimp MCP server. Returns { ok: true }.",
        NoInput, ping,
    ),
    ToolSpec(
        "mc_listAudiences",
        "List all Mailchimp audiences (lists). Returns audience IDs, names, member counts, "
        "and creation dates. Use this to find audience IDs before querying members.",
        Pagination, list_audiences,
    ),
    ToolSpec(
        "mc_getAudience",
        "Get detailed information about a specific audience/list including member count, "
        "stats, and settings. Requires audienceId.",
        AudienceInput, get_audience,
    ),
    ToolSpec(
        "mc_listMembers",
        "List members in an audience. Useful for browsing subscribers, checking member "
        "status, and finding email addresses. Supports filtering by status.",
        ListMembersInput, list_members,
    ),
    ToolSpec(
        "mc_getMember",
        "Get detailed information about a specific member in an audience by email address. "
        "Returns subscription status, signup date, location, and merge fields.",
        MemberInput, get_member,
    ),
    ToolSpec(
        "mc_listCampaigns",
        "List Mailchimp campaigns with optional filters. Returns campaign details including "
        "subject, status, send time, and recipient counts.",
        ListCampaignsInput, list_campaigns,
    ),
    ToolSpec(
        "mc_getCampaign",
        "Get detailed information about a specific campaign including settings, recipients, "
        "send time, and tracking options.",
        CampaignInput, get_campaign,
    ),
    ToolSpec(
        "mc_getCampaignReport",
        "Get analytics report for a sent campaign including opens, clicks, bounces, "
        "unsubscribes, and engagement statistics.",
        CampaignInput, get_campaign_report,
    ),
    ToolSpec(
        "mc_getAccount",
        "Get account information including account name, username, email, and timezone.",
        NoInput, get_account,
    ),
]
