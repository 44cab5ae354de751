"""
Mailchimp tools that modify the account.

These are only registered when MAILCHIMP_READONLY=false.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from mailchimp_mcp.api.client import MailchimpClient
from mailchimp_mcp.tools.read_tools import AudienceInput, CampaignInput, MemberInput, MemberStatus
from mailchimp_mcp.tools.registry import EmailAddress, MailchimpId, ToolInput, ToolSpec, subscriber_hash

MAX_CONTENT_LENGTH = 1000000


class CampaignSettings(BaseModel):
    subject_line: Optional[str] = Field(default=None, description="The subject line for the campaign")
    from_name: Optional[str] = Field(default=None, description="The 'from' name for the campaign")
    reply_to: Optional[EmailAddress] = Field(default=None, description="The reply-to email address for the campaign")
    title: Optional[str] = Field(default=None, description="The title of the campaign")


class Recipients(BaseModel):
    list_id: MailchimpId = Field(description="The unique ID for the audience (list)")


class CreateCampaignInput(ToolInput):
    type: Literal["regular", "plaintext", "absplit", "rss", "variate"] = Field(description="Campaign type")
    recipients: Recipients = Field(description="Recipients for the campaign")
    settings: CampaignSettings = Field(description="Campaign settings")


class UpdateCampaignInput(CampaignInput):
    settings: Optional[CampaignSettings] = Field(default=None, description="Campaign settings to update")


class CampaignContentInput(CampaignInput):
    plain_text: Optional[str] = Field(
        default=None, max_length=MAX_CONTENT_LENGTH, description="Plain text version of the campaign"
    )
    html: Optional[str] = Field(
        default=None, max_length=MAX_CONTENT_LENGTH, description="HTML version of the campaign"
    )


class CreateMemberInput(ToolInput):
    audience_id: MailchimpId = Field(alias="audienceId", description="The unique ID for the audience (list)")
    email_address: EmailAddress = Field(description="Email address for the subscriber")
    status: MemberStatus = Field(description="Subscriber's current status")
    merge_fields: Optional[Dict[str, Any]] = Field(default=None, description="Merge field values, e.g. FNAME")
    tags: Optional[List[str]] = Field(default=None, description="Tags to apply to the member")


class UpdateMemberInput(MemberInput):
    email_address: Optional[EmailAddress] = Field(default=None, description="New email address")
    status: Optional[MemberStatus] = Field(default=None, description="New subscription status")
    merge_fields: Optional[Dict[str, Any]] = Field(default=None, description="Merge field values to update")


class MemberTag(BaseModel):
    name: str = Field(min_length=1, max_length=100, description="The name of the tag")
    status: Literal["active", "inactive"] = Field(description="active to add the tag, inactive to remove it")


class MemberTagsInput(MemberInput):
    tags: List[MemberTag] = Field(
        min_length=1,
        description="Array of tag objects with name and status (active to add, inactive to remove)",
    )


def _member_path(audience_id: str, email: str) -> str:
    return f"/lists/{audience_id}/members/{subscriber_hash(email)}"


async def create_campaign(client: MailchimpClient, params: CreateCampaignInput) -> Any:
    return await client.post("/campaigns", params.model_dump(exclude_none=True))


async def update_campaign(client: MailchimpClient, params: UpdateCampaignInput) -> Any:
    if params.settings is None:
        raise ValueError("Settings must be provided to update campaign")
    return await client.patch(
        f"/campaigns/{params.campaign_id}",
        {"settings": params.settings.model_dump(exclude_none=True)},
    )


async def set_campaign_content(client: MailchimpClient, params: CampaignContentInput) -> Any:
    if not params.plain_text and not params.html:
        raise ValueError("Either plain_text or html must be provided")
    content = {}
    if params.plain_text:
        content["plain_text"] = params.plain_text
    if params.html:
        content["html"] = params.html
    return await client.put(f"/campaigns/{params.campaign_id}/content", content)


async def send_campaign(client: MailchimpClient, params: CampaignInput) -> Any:
    return await client.post(f"/campaigns/{params.campaign_id}/actions/send", {})


async def delete_campaign(client: MailchimpClient, params: CampaignInput) -> Any:
    return await client.delete(f"/campaigns/{params.campaign_id}")


async def create_member(client: MailchimpClient, params: CreateMemberInput) -> Any:
    body = params.model_dump(exclude_none=True, exclude={"audience_id"})
    return await client.put(_member_path(params.audience_id, params.email_address), body)


async def update_member(client: MailchimpClient, params: UpdateMemberInput) -> Any:
    body = params.model_dump(exclude_none=True, include={"email_address", "status", "merge_fields"})
    if not body:
        raise ValueError(
            "At least one field must be provided to update (email_address, status, or merge_fields)"
        )
    return await client.patch(_member_path(params.audience_id, params.email), body)


async def delete_member(client: MailchimpClient, params: MemberInput) -> Any:
    return await client.delete(_member_path(params.audience_id, params.email))


async def add_tag_to_member(client: MailchimpClient, params: MemberTagsInput) -> Any:
    return await client.post(
        f"{_member_path(params.audience_id, params.email)}/tags",
        {"tags": [tag.model_dump() for tag in params.tags]},
    )


async def delete_audience(client: MailchimpClient, params: AudienceInput) -> Any:
    return await client.delete(f"/lists/{params.audience_id}")


WRITE_TOOLS = [
    ToolSpec("mc_createCampaign", "Create a new Mailchimp campaign",
             CreateCampaignInput, create_campaign, write=True),
    ToolSpec("mc_updateCampaign", "Update campaign settings",
             UpdateCampaignInput, update_campaign, write=True),
    ToolSpec("mc_setCampaignContent", "Set campaign content (plain_text or html)",
             CampaignContentInput, set_campaign_content, write=True),
    ToolSpec("mc_sendCampaign", "Send a campaign immediately",
             CampaignInput, send_campaign, write=True),
    ToolSpec("mc_deleteCampaign", "Delete a campaign",
             CampaignInput, delete_campaign, write=True),
    ToolSpec("mc_createMember", "Add or update a member in an audience",
             CreateMemberInput, create_member, write=True),
    ToolSpec("mc_updateMember", "Update a member's email address, status or merge fields",
             UpdateMemberInput, update_member, write=True),
    ToolSpec("mc_deleteMember", "Permanently delete a member from an audience",
             MemberInput, delete_member, write=True),
    ToolSpec("mc_addTagToMember", "Add or remove tags from member",
             MemberTagsInput, add_tag_to_member, write=True),
    ToolSpec("mc_deleteAudience", "Delete an audience (list)",
             AudienceInput, delete_audience, write=True),
]
