"""Emelia campaign connector (GraphQL)."""

import logging
from typing import Any

from .base import Connector, RequestContext, operation, option_loader, sort_options
from .config import EmeliaCredentials
from .errors import ApiError
from .fields import (
    OperationDescriptor,
    collection,
    fixed_collection,
    limit_field,
    number,
    options,
    return_all_field,
    string,
)
from .http import api_request, default_headers
from .mapping import apply_mappings, key_value_pairs, passthrough
from .normalize import response_field
from .pagination import take

logger = logging.getLogger(__name__)

API_URL = "https://graphql.emelia.io/graphql"


# ============================================================================
# GraphQL documents
# ============================================================================

ADD_CONTACT = """
mutation AddContactToCampaignHook($id: ID!, $contact: JSON!) {
    addContactToCampaignHook(id: $id, contact: $contact)
}"""

CREATE_CAMPAIGN = """
mutation createCampaign($name: String!) {
    createCampaign(name: $name) {
        _id
        name
        status
        createdAt
        provider
        startAt
        estimatedEnd
    }
}"""

GET_CAMPAIGN = """
query campaign($id: ID!) {
    campaign(id: $id) {
        _id
        name
        status
        createdAt
        schedule {
            dailyContact
            dailyLimit
            minInterval
            maxInterval
            trackLinks
            trackOpens
            timeZone
            days {
                day
                from {
                    hour
                    minute
                }
                to {
                    hour
                    minute
                }
            }
        }
        provider
        startAt
        recipients {
            total_count
        }
        estimatedEnd
    }
}"""

ALL_CAMPAIGNS = """
query all_campaigns {
    all_campaigns {
        _id
        name
        status
        createdAt
        stats {
            mailsSent
            uniqueOpensPercent
            opens
            linkClickedPercent
            repliedPercent
            bouncedPercent
            unsubscribePercent
            progressPercent
        }
    }
}"""

CAMPAIGN_NAMES = """
query all_campaigns {
    all_campaigns {
        _id
        name
    }
}"""

PAUSE_CAMPAIGN = """
mutation pauseCampaign($id: ID!) {
    pauseCampaign(id: $id)
}"""

START_CAMPAIGN = """
mutation startCampaign($id: ID!) {
    startCampaign(id: $id)
}"""


# ============================================================================
# Field tables
# ============================================================================

def _campaign_id(description: str):
    return string("campaignId", "Campaign ID", required=True, description=description)


CAMPAIGN_DESCRIPTORS = (
    OperationDescriptor(
        "campaign", "addContact", "Add a contact to a campaign",
        (
            options("campaignId", "Campaign ID", default="", required=True, load_options="getCampaigns",
                    description="The ID of the campaign to add the contact to"),
            string("contactEmail", "Contact Email", required=True,
                   description="The email of the contact to add to the campaign"),
            collection(
                "additionalFields",
                "Additional Fields",
                fixed_collection(
                    "customFieldsUi",
                    "Custom Fields",
                    "customFieldsValues",
                    string("fieldName", "Field Name", default="", description="The name of the custom field"),
                    string("value", "Value", default="", description="The value to set on the custom field"),
                ),
                string("firstName", "First Name", description="First name of the contact to add"),
                string("lastName", "Last Name", description="Last name of the contact to add"),
                string("lastContacted", "Last Contacted", description="Last contacted date of the contact to add"),
                string("lastOpen", "Last Open", description="Last opened date of the contact to add"),
                string("lastReplied", "Last Replied", description="Last replied date of the contact to add"),
                number("mailsSent", "Mails Sent", default=0, description="Number of emails sent to the contact to add"),
                string("phoneNumber", "Phone Number", description="Phone number of the contact to add"),
            ),
        ),
        writes=True,
    ),
    OperationDescriptor(
        "campaign", "create", "Create a campaign",
        (string("campaignName", "Campaign Name", required=True, description="The name of the campaign to create"),),
        writes=True,
    ),
    OperationDescriptor(
        "campaign", "get", "Get a campaign",
        (_campaign_id("The ID of the campaign to retrieve"),),
    ),
    OperationDescriptor(
        "campaign", "getAll", "Get all campaigns",
        (return_all_field(), limit_field(default=100, max_value=100)),
    ),
    OperationDescriptor(
        "campaign", "pause", "Pause a campaign",
        (_campaign_id("The ID of the campaign to pause. The campaign must be in RUNNING mode"),),
        writes=True,
    ),
    OperationDescriptor(
        "campaign", "start", "Start a campaign",
        (_campaign_id("The ID of the campaign to start. Email provider and contacts must be set"),),
        writes=True,
    ),
)

CONTACT_FIELDS = passthrough(
    ("firstName", "lastName", "lastContacted", "lastOpen", "lastReplied", "mailsSent", "phoneNumber"),
    keep_falsy=True,
)


class EmeliaConnector(Connector):
    name = "emelia"
    display_name = "Emelia"
    credentials_class = EmeliaCredentials
    descriptors = CAMPAIGN_DESCRIPTORS

    async def graphql(
        self,
        ctx: RequestContext,
        query: str,
        operation_name: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run a GraphQL document and return its ``data``.

        GraphQL reports failures inside a 200 response, so an ``errors`` array is raised
        as :class:`ApiError`.
        """
        credentials: EmeliaCredentials = ctx.credentials
        response = await api_request(
            "POST",
            API_URL,
            headers=default_headers(Authorization=credentials.api_key),
            json_body={"query": query, "operationName": operation_name, "variables": variables or {}},
        )
        if response.get("errors"):
            messages = "; ".join(str(error.get("message", error)) for error in response["errors"])
            raise ApiError(f"Emelia API error: {messages}", response["errors"])
        return response_field(response, "data")

    @operation("campaign", "addContact")
    async def add_contact(self, ctx: RequestContext):
        additional_fields = ctx.param("additionalFields")
        contact = {"email": ctx.param("contactEmail")}
        rows = (additional_fields.get("customFieldsUi") or {}).get("customFieldsValues", [])
        contact.update(key_value_pairs(rows, "fieldName", "value"))
        apply_mappings(CONTACT_FIELDS, additional_fields, contact)

        data = await self.graphql(
            ctx, ADD_CONTACT, "AddContactToCampaignHook", {"id": ctx.param("campaignId"), "contact": contact}
        )
        return {"contactId": response_field(data, "addContactToCampaignHook")}

    @operation("campaign", "create")
    async def create_campaign(self, ctx: RequestContext):
        data = await self.graphql(ctx, CREATE_CAMPAIGN, "createCampaign", {"name": ctx.param("campaignName")})
        return response_field(data, "createCampaign")

    @operation("campaign", "get")
    async def get_campaign(self, ctx: RequestContext):
        data = await self.graphql(ctx, GET_CAMPAIGN, "campaign", {"id": ctx.param("campaignId")})
        return response_field(data, "campaign")

    @operation("campaign", "getAll")
    async def get_all_campaigns(self, ctx: RequestContext):
        data = await self.graphql(ctx, ALL_CAMPAIGNS, "all_campaigns")
        return take(response_field(data, "all_campaigns"), ctx.param("returnAll"), ctx.param("limit"))

    @operation("campaign", "pause")
    async def pause_campaign(self, ctx: RequestContext):
        await self.graphql(ctx, PAUSE_CAMPAIGN, "pauseCampaign", {"id": ctx.param("campaignId")})
        return {"success": True}

    @operation("campaign", "start")
    async def start_campaign(self, ctx: RequestContext):
        await self.graphql(ctx, START_CAMPAIGN, "startCampaign", {"id": ctx.param("campaignId")})
        return {"success": True}

    @option_loader("getCampaigns")
    async def load_campaigns(self, ctx: RequestContext):
        data = await self.graphql(ctx, CAMPAIGN_NAMES, "all_campaigns")
        campaigns = response_field(data, "all_campaigns")
        return sort_options([{"name": campaign["name"], "value": campaign["_id"]} for campaign in campaigns])
