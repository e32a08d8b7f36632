"""Jira Software connector (Cloud and Server)."""

import logging
from typing import Any

import httpx

from .base import Connector, RequestContext, operation, option_loader, sort_options
from .config import JiraCredentials
from .errors import ConnectorError, CredentialsError, DataShapeError, ValidationError
from .http import api_request, basic_auth_header, default_headers
from .jira_fields import JIRA_DESCRIPTORS
from .mapping import (
    QUERY,
    FieldMapping,
    apply_mappings,
    join_comma,
    key_value_pairs,
    parse_json_parameter,
    passthrough,
    split_comma,
    wrap_each,
)
from .normalize import DEFAULT_MIME_TYPE, Records, attach_binary_content, read_binary, response_field, to_records
from .pagination import Page, paginate, take

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
CREDENTIAL_TEST_TIMEOUT = 5.0


# ============================================================================
# API variants
# ============================================================================

class JiraVariant:
    """Differences between Jira Cloud and Jira Server, selected once per record."""

    name = ""
    api_version = ""
    assignee_key = ""

    def secret(self, credentials: JiraCredentials) -> str:
        raise NotImplementedError

    def api(self, path: str) -> str:
        """Prefix ``path`` with this variant's REST API version."""
        return f"/api/{self.api_version}{path}"

    @property
    def issue_mappings(self) -> tuple[FieldMapping, ...]:
        return ISSUE_FIELD_MAPPINGS + (FieldMapping("assignee", f"assignee.{self.assignee_key}"),)

    def comment_body(self, text: str) -> Any:
        return text

    async def projects(self, connector: "JiraConnector", ctx: RequestContext) -> list[dict[str, Any]]:
        raise NotImplementedError

    async def users(self, connector: "JiraConnector", ctx: RequestContext) -> list[dict[str, Any]]:
        raise NotImplementedError


class JiraCloud(JiraVariant):
    name = "cloud"
    api_version = "3"
    assignee_key = "id"

    def secret(self, credentials: JiraCredentials) -> str:
        if not credentials.api_token:
            raise CredentialsError("JIRA_API_TOKEN must be set in environment for Jira Cloud")
        return credentials.api_token

    def comment_body(self, text: str) -> dict[str, Any]:
        """Wrap plain text into an Atlassian Document Format document."""
        return {
            "type": "doc",
            "version": 1,
            "content": [
                {
                    "type": "paragraph",
                    "content": [{"type": "text", "text": text}],
                },
            ],
        }

    async def projects(self, connector, ctx):
        return await connector.request_all_items(ctx, "values", "/api/2/project/search")

    async def users(self, connector, ctx):
        users = await connector.request(ctx, "/api/2/users/search")
        return [{"name": user.get("displayName"), "value": user.get("accountId")} for user in users]


class JiraServer(JiraVariant):
    name = "server"
    api_version = "2"
    assignee_key = "name"

    def secret(self, credentials: JiraCredentials) -> str:
        if not credentials.password:
            raise CredentialsError("JIRA_PASSWORD must be set in environment for Jira Server")
        return credentials.password

    async def projects(self, connector, ctx):
        return await connector.request(ctx, "/api/2/project")

    async def users(self, connector, ctx):
        # The user search on Server needs a username; a quote matches everyone.
        users = await connector.request(ctx, "/api/2/user/search", query={"username": "'"})
        return [{"name": user.get("displayName"), "value": user.get("name")} for user in users]


JIRA_VARIANTS = {variant.name: variant for variant in (JiraCloud(), JiraServer())}


# ============================================================================
# Request mappings
# ============================================================================

ISSUE_FIELD_MAPPINGS = (
    FieldMapping("summary", "summary"),
    FieldMapping("issueType", "issuetype.id"),
    FieldMapping("labels", "labels"),
    FieldMapping("serverLabels", "labels"),
    FieldMapping("priority", "priority.id"),
    FieldMapping("reporter", "reporter.id"),
    FieldMapping("description", "description"),
    FieldMapping("componentIds", "components", transform=wrap_each("id")),
)

ISSUE_CREATE_QUERY = (FieldMapping("updateHistory", "updateHistory", QUERY),)
ISSUE_GET_QUERY = passthrough(("fields", "fieldsByKey", "expand", "properties", "updateHistory"), QUERY)
ISSUE_SEARCH_BODY = (
    FieldMapping("fields", "fields", transform=split_comma),
    FieldMapping("jql", "jql"),
    FieldMapping("expand", "expand", transform=split_comma),
)
ISSUE_NOTIFY_BODY = passthrough(("textBody", "htmlBody", "subject"))
ISSUE_TRANSITIONS_QUERY = passthrough(("transitionId", "expand", "skipRemoteOnlyCondition"), QUERY)
COMMENT_QUERY = passthrough(("expand", "orderBy"), QUERY)
USER_CREATE_BODY = passthrough(("password", "notification"), keep_falsy=True)
USER_GET_QUERY = (FieldMapping("expand", "expand", QUERY, transform=join_comma),)

NOTIFY_FLAGS = ("reporter", "assignee", "watchers", "voters")


def custom_fields(values: dict[str, Any]) -> dict[str, Any]:
    rows = (values.get("customFieldsUi") or {}).get("customFieldsValues", [])
    return key_value_pairs(rows, "fieldId", "fieldValue")


def notification_recipients(values: dict[str, Any]) -> dict[str, Any]:
    recipients: dict[str, Any] = {}
    for flag in NOTIFY_FLAGS:
        if values.get(flag):
            recipients[flag] = True
    if values.get("users"):
        recipients["users"] = [{"accountId": user} for user in values["users"]]
    if values.get("groups"):
        recipients["groups"] = [{"name": group} for group in values["groups"]]
    return recipients


class JiraConnector(Connector):
    name = "jira"
    display_name = "Jira"
    credentials_class = JiraCredentials
    descriptors = JIRA_DESCRIPTORS

    def select_strategy(self, params: dict[str, Any]) -> JiraVariant:
        version = params.get("jiraVersion") or "cloud"
        if version not in JIRA_VARIANTS:
            raise ValidationError(f"Unknown Jira version: {version}")
        return JIRA_VARIANTS[version]

    # -- transport ----------------------------------------------------------

    async def request(
        self,
        ctx: RequestContext,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        query: dict[str, Any] | None = None,
        *,
        uri: str | None = None,
        files: dict[str, Any] | None = None,
        raw: bool = False,
        timeout: float | None = None,
    ) -> Any:
        """Call ``{domain}/rest{endpoint}``, or ``uri`` when given (attachment content)."""
        credentials: JiraCredentials = ctx.credentials
        headers = default_headers(
            Authorization=basic_auth_header(credentials.email, ctx.strategy.secret(credentials)),
            **{"X-Atlassian-Token": "no-check"},
        )
        if raw:
            headers["Accept"] = "*/*"
        return await api_request(
            method,
            uri or f"{credentials.domain}/rest{endpoint}",
            headers=headers,
            params=query,
            json_body=body,
            files=files,
            raw=raw,
            timeout=timeout,
        )

    async def request_all_items(
        self,
        ctx: RequestContext,
        property_name: str,
        endpoint: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
        *,
        return_all: bool = True,
        limit: int | None = None,
    ) -> list[Any]:
        """Follow ``startAt``/``maxResults`` until ``total`` (or ``isLast``) is reached.

        The paging keys travel in the body for POST searches and in the query string
        otherwise.
        """
        body = dict(body or {})
        query = dict(query or {})
        paging = body if method == "POST" else query

        async def fetch_page(start_at, size):
            paging["startAt"] = start_at
            paging["maxResults"] = size
            response = await self.request(ctx, endpoint, method, body or None, query)
            items = response_field(response, property_name)
            start = response.get("startAt", start_at)
            next_start = start + response.get("maxResults", size)
            if "isLast" in response:
                more = not response["isLast"]
            else:
                more = response.get("total") is not None and next_start < response["total"]
            return Page(items, next_start if more else None)

        return await paginate(fetch_page, return_all=return_all, limit=limit, page_size=PAGE_SIZE, start=0)

    async def subtask_issue_types(self, ctx: RequestContext) -> set[str]:
        issue_types = await self.request(ctx, "/api/2/issuetype")
        return {str(issue_type["id"]) for issue_type in issue_types if issue_type.get("subtask")}

    async def apply_parent(self, ctx: RequestContext, fields: dict[str, Any], issue_type: Any, parent_key: str | None):
        """Sub-task issue types need a parent; resolve them before any mutating call."""
        if str(issue_type) not in await self.subtask_issue_types(ctx):
            return
        if not parent_key:
            raise ValidationError("You must define a Parent Issue Key when Issue type is sub-task")
        fields["parent"] = {"key": parent_key.upper()}

    def comment_body(self, ctx: RequestContext) -> dict[str, Any]:
        if ctx.param("jsonParameters"):
            return {"body": parse_json_parameter(ctx.param("commentJson"), "Document Format must be a valid JSON")}
        return {"body": ctx.strategy.comment_body(ctx.param("comment"))}

    # -- issue --------------------------------------------------------------

    @operation("issue", "create")
    async def create_issue(self, ctx: RequestContext):
        additional_fields = ctx.param("additionalFields")
        issue_type = ctx.param("issueType")
        fields = {
            "summary": ctx.param("summary"),
            "project": {"id": ctx.param("project")},
            "issuetype": {"id": issue_type},
        }
        apply_mappings(ctx.strategy.issue_mappings, additional_fields, fields)
        _, query = ctx.apply(ISSUE_CREATE_QUERY, additional_fields)
        fields.update(custom_fields(additional_fields))
        await self.apply_parent(ctx, fields, issue_type, additional_fields.get("parentIssueKey"))
        return await self.request(ctx, "/api/2/issue", "POST", {"fields": fields}, query)

    @operation("issue", "update")
    async def update_issue(self, ctx: RequestContext):
        issue_key = ctx.param("issueKey")
        update_fields = ctx.param("updateFields")
        fields, _ = apply_mappings(ctx.strategy.issue_mappings, update_fields)
        fields.update(custom_fields(update_fields))
        if update_fields.get("issueType"):
            await self.apply_parent(ctx, fields, update_fields["issueType"], update_fields.get("parentIssueKey"))

        if update_fields.get("statusId"):
            await self.request(
                ctx, f"/api/2/issue/{issue_key}/transitions", "POST", {"transition": {"id": update_fields["statusId"]}}
            )
        await self.request(ctx, f"/api/2/issue/{issue_key}", "PUT", {"fields": fields})
        return {"success": True}

    @operation("issue", "get")
    async def get_issue(self, ctx: RequestContext):
        _, query = ctx.apply(ISSUE_GET_QUERY, ctx.param("additionalFields"))
        return await self.request(ctx, f"/api/2/issue/{ctx.param('issueKey')}", query=query)

    @operation("issue", "getAll")
    async def get_all_issues(self, ctx: RequestContext):
        body, _ = ctx.apply(ISSUE_SEARCH_BODY, ctx.param("options"))
        return await self.request_all_items(
            ctx, "issues", "/api/2/search", "POST", body,
            return_all=ctx.param("returnAll"), limit=ctx.param("limit"),
        )

    @operation("issue", "changelog")
    async def get_changelog(self, ctx: RequestContext):
        return await self.request_all_items(
            ctx, "values", f"/api/2/issue/{ctx.param('issueKey')}/changelog",
            return_all=ctx.param("returnAll"), limit=ctx.param("limit"),
        )

    @operation("issue", "notify")
    async def notify(self, ctx: RequestContext):
        body, _ = ctx.apply(ISSUE_NOTIFY_BODY, ctx.param("additionalFields"))
        if ctx.param("jsonParameters"):
            recipients = ctx.param("notificationRecipientsJson")
            if recipients:
                body["to"] = parse_json_parameter(recipients, "Notification Recipients must be a valid JSON")
            restrictions = ctx.param("notificationRecipientsRestrictionsJson")
            if restrictions:
                body["restrict"] = parse_json_parameter(
                    restrictions, "Notification Recipients Restrictions must be a valid JSON"
                )
        else:
            values = ctx.param("notificationRecipientsUi").get("notificationRecipientsValues", {})
            body["to"] = notification_recipients(values)
            values = ctx.param("notificationRecipientsRestrictionsUi").get("notificationRecipientsRestrictionsValues", {})
            restrictions = {}
            if values.get("groups"):
                restrictions["groups"] = [{"name": group} for group in values["groups"]]
            body["restrict"] = restrictions
        response = await self.request(ctx, f"/api/2/issue/{ctx.param('issueKey')}/notify", "POST", body)
        return response or {"success": True}

    @operation("issue", "transitions")
    async def get_transitions(self, ctx: RequestContext):
        _, query = ctx.apply(ISSUE_TRANSITIONS_QUERY, ctx.param("additionalFields"))
        response = await self.request(ctx, f"/api/2/issue/{ctx.param('issueKey')}/transitions", query=query)
        return response_field(response, "transitions")

    @operation("issue", "delete")
    async def delete_issue(self, ctx: RequestContext):
        query = {"deleteSubtasks": ctx.param("deleteSubtasks")}
        await self.request(ctx, f"/api/2/issue/{ctx.param('issueKey')}", "DELETE", query=query)
        return {"success": True}

    # -- issue attachment ---------------------------------------------------

    @operation("issueAttachment", "add")
    async def add_attachment(self, ctx: RequestContext):
        content, binary = read_binary(ctx.item.binary, ctx.param("binaryPropertyName"))
        file_name = binary.get("fileName") or ctx.param("binaryPropertyName")
        files = {"file": (file_name, content, binary.get("mimeType") or DEFAULT_MIME_TYPE)}
        endpoint = ctx.strategy.api(f"/issue/{ctx.param('issueKey')}/attachments")
        return await self.request(ctx, endpoint, "POST", files=files)

    @operation("issueAttachment", "get")
    async def get_attachment(self, ctx: RequestContext):
        attachment = await self.request(ctx, ctx.strategy.api(f"/attachment/{ctx.param('attachmentId')}"))
        return await self._with_downloads(ctx, Records(to_records(attachment)))

    @operation("issueAttachment", "getAll")
    async def get_all_attachments(self, ctx: RequestContext):
        issue = await self.request(ctx, f"/api/2/issue/{ctx.param('issueKey')}")
        attachments = response_field(response_field(issue, "fields"), "attachment")
        attachments = take(attachments, ctx.param("returnAll"), ctx.param("limit"))
        return await self._with_downloads(ctx, Records(to_records(attachments)))

    @operation("issueAttachment", "remove")
    async def remove_attachment(self, ctx: RequestContext):
        await self.request(ctx, ctx.strategy.api(f"/attachment/{ctx.param('attachmentId')}"), "DELETE")
        return {"success": True}

    async def _with_downloads(self, ctx: RequestContext, records: Records) -> Records:
        if not ctx.param("download"):
            return records

        async def fetch(url: str) -> bytes:
            return await self.request(ctx, "", uri=url, raw=True)

        await attach_binary_content(
            records, fetch, ctx.param("binaryProperty"), continue_on_fail=ctx.continue_on_fail
        )
        return records

    # -- issue comment ------------------------------------------------------

    @operation("issueComment", "add")
    async def add_comment(self, ctx: RequestContext):
        _, query = ctx.apply(COMMENT_QUERY, ctx.param("options"))
        endpoint = ctx.strategy.api(f"/issue/{ctx.param('issueKey')}/comment")
        return await self.request(ctx, endpoint, "POST", self.comment_body(ctx), query)

    @operation("issueComment", "get")
    async def get_comment(self, ctx: RequestContext):
        _, query = ctx.apply(COMMENT_QUERY, ctx.param("options"))
        endpoint = ctx.strategy.api(f"/issue/{ctx.param('issueKey')}/comment/{ctx.param('commentId')}")
        return await self.request(ctx, endpoint, query=query)

    @operation("issueComment", "getAll")
    async def get_all_comments(self, ctx: RequestContext):
        _, query = ctx.apply(COMMENT_QUERY, ctx.param("options"))
        return await self.request_all_items(
            ctx, "comments", ctx.strategy.api(f"/issue/{ctx.param('issueKey')}/comment"), query=query,
            return_all=ctx.param("returnAll"), limit=ctx.param("limit"),
        )

    @operation("issueComment", "remove")
    async def remove_comment(self, ctx: RequestContext):
        endpoint = ctx.strategy.api(f"/issue/{ctx.param('issueKey')}/comment/{ctx.param('commentId')}")
        await self.request(ctx, endpoint, "DELETE")
        return {"success": True}

    @operation("issueComment", "update")
    async def update_comment(self, ctx: RequestContext):
        _, query = ctx.apply(COMMENT_QUERY, ctx.param("options"))
        endpoint = ctx.strategy.api(f"/issue/{ctx.param('issueKey')}/comment/{ctx.param('commentId')}")
        return await self.request(ctx, endpoint, "PUT", self.comment_body(ctx), query)

    # -- user ---------------------------------------------------------------

    @operation("user", "create")
    async def create_user(self, ctx: RequestContext):
        ctx.body.update(
            name=ctx.param("username"),
            emailAddress=ctx.param("emailAddress"),
            displayName=ctx.param("displayName"),
        )
        body, _ = ctx.apply(USER_CREATE_BODY, ctx.param("additionalFields"))
        return await self.request(ctx, ctx.strategy.api("/user"), "POST", body)

    @operation("user", "delete")
    async def delete_user(self, ctx: RequestContext):
        await self.request(ctx, ctx.strategy.api("/user"), "DELETE", query={"accountId": ctx.param("accountId")})
        return {"success": True}

    @operation("user", "get")
    async def get_user(self, ctx: RequestContext):
        ctx.query["accountId"] = ctx.param("accountId")
        _, query = ctx.apply(USER_GET_QUERY, ctx.param("additionalFields"))
        return await self.request(ctx, ctx.strategy.api("/user"), query=query)

    # -- option loaders -----------------------------------------------------

    @option_loader("getProjects")
    async def load_projects(self, ctx: RequestContext):
        projects = await ctx.strategy.projects(self, ctx)
        return sort_options([{"name": project["name"], "value": project["id"]} for project in projects])

    @option_loader("getIssueTypes")
    async def load_issue_types(self, ctx: RequestContext):
        project = await self.request(ctx, f"/api/2/project/{ctx.param('project')}")
        issue_types = response_field(project, "issueTypes")
        return sort_options([{"name": issue_type["name"], "value": issue_type["id"]} for issue_type in issue_types])

    @option_loader("getLabels")
    async def load_labels(self, ctx: RequestContext):
        labels = response_field(await self.request(ctx, "/api/2/label"), "values")
        return sort_options([{"name": label, "value": label} for label in labels])

    @option_loader("getPriorities")
    async def load_priorities(self, ctx: RequestContext):
        priorities = await self.request(ctx, "/api/2/priority")
        return sort_options([{"name": priority["name"], "value": priority["id"]} for priority in priorities])

    @option_loader("getUsers")
    async def load_users(self, ctx: RequestContext):
        return sort_options(await ctx.strategy.users(self, ctx))

    @option_loader("getGroups")
    async def load_groups(self, ctx: RequestContext):
        groups = response_field(await self.request(ctx, "/api/2/groups/picker"), "groups")
        return sort_options([{"name": group["name"], "value": group["name"]} for group in groups])

    @option_loader("getTransitions")
    async def load_transitions(self, ctx: RequestContext):
        response = await self.request(ctx, f"/api/2/issue/{ctx.param('issueKey')}/transitions")
        transitions = response_field(response, "transitions")
        return sort_options([{"name": transition["name"], "value": transition["id"]} for transition in transitions])

    @option_loader("getCustomFields")
    async def load_custom_fields(self, ctx: RequestContext):
        """Custom fields available on the create screen of the selected project and issue type."""
        if ctx.param("operation") == "create":
            project_id = ctx.param("project")
            issue_type_id = ctx.param("issueType")
        else:
            issue = await self.request(ctx, f"/api/2/issue/{ctx.param('issueKey')}")
            project_id = issue["fields"]["project"]["id"]
            issue_type_id = issue["fields"]["issuetype"]["id"]

        meta = await self.request(
            ctx,
            "/api/2/issue/createmeta",
            query={"projectIds": project_id, "issueTypeIds": issue_type_id, "expand": "projects.issuetypes.fields"},
        )
        try:
            project = next(p for p in meta["projects"] if str(p["id"]) == str(project_id))
            issue_type = next(t for t in project["issuetypes"] if str(t["id"]) == str(issue_type_id))
        except (KeyError, StopIteration):
            raise DataShapeError(f"No create metadata for project {project_id} and issue type {issue_type_id}")

        return [
            {"name": field["name"], "value": field.get("key") or field.get("fieldId")}
            for field in issue_type.get("fields", {}).values()
            if "customId" in (field.get("schema") or {})
        ]

    @option_loader("getProjectComponents")
    async def load_project_components(self, ctx: RequestContext):
        response = await self.request(ctx, f"/api/2/project/{ctx.param('project')}/component")
        components = response_field(response, "values")
        return sort_options([{"name": component["name"], "value": component["id"]} for component in components])

    # -- credentials --------------------------------------------------------

    async def test_credentials(self, jira_version: str = "cloud", credentials: JiraCredentials | None = None):
        """Check the credentials by listing projects."""
        ctx = RequestContext(
            credentials=credentials,
            resource="",
            operation="",
            params={"jiraVersion": jira_version},
            strategy=self.select_strategy({"jiraVersion": jira_version}),
        )
        try:
            if ctx.credentials is None:
                ctx.credentials = self.load_credentials()
            await self.request(ctx, "/api/2/project", query={"recent": 0}, timeout=CREDENTIAL_TEST_TIMEOUT)
        except (ConnectorError, httpx.HTTPError) as e:
            return {"status": "Error", "message": f"Connection details not valid: {e}"}
        return {"status": "OK", "message": "Authentication successful!"}
