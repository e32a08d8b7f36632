"""Field tables for the Jira Software connector."""

from .fields import (
    OperationDescriptor,
    boolean,
    collection,
    fixed_collection,
    json_field,
    limit_field,
    multi_options,
    option,
    options,
    return_all_field,
    string,
    when,
)

JIRA_VERSION = options(
    "jiraVersion",
    "Jira Version",
    (option("Cloud", "cloud"), option("Server (Self Hosted)", "server")),
    default="cloud",
)

ISSUE_KEY = string("issueKey", "Issue Key", required=True)
ATTACHMENT_ID = string("attachmentId", "Attachment ID", required=True)
COMMENT_ID = string("commentId", "Comment ID", required=True, description="The ID of the comment")
ACCOUNT_ID = string("accountId", "Account ID", required=True, description="Account ID of the user")
JSON_PARAMETERS = boolean("jsonParameters", "JSON Parameters")
DOWNLOAD = boolean("download", "Download")
BINARY_PROPERTY = string(
    "binaryProperty",
    "Binary Property",
    default="data",
    required=True,
    description="Name of the binary property the downloaded attachment is written to",
    show=when(download=True),
)

_ASSIGNEE = options("assignee", "Assignee", default="", load_options="getUsers")
_DESCRIPTION = string("description", "Description")
_LABELS = multi_options("labels", "Labels", load_options="getLabels", show=when(jiraVersion="cloud"))
_SERVER_LABELS = multi_options(
    "serverLabels",
    "Labels",
    description="Labels to add to the issue",
    show=when(jiraVersion="server"),
)
_PARENT_ISSUE_KEY = string(
    "parentIssueKey",
    "Parent Issue Key",
    description="Required for sub-tasks",
)
_PRIORITY = options("priority", "Priority", default="", load_options="getPriorities")
_REPORTER = options("reporter", "Reporter", default="", load_options="getUsers")
_CUSTOM_FIELDS = fixed_collection(
    "customFieldsUi",
    "Custom Fields",
    "customFieldsValues",
    options("fieldId", "Field ID", default="", load_options="getCustomFields"),
    string("fieldValue", "Field Value"),
)

_COMMENT = string("comment", "Comment", required=True, description="Comment's text", show=when(jsonParameters=False))
_COMMENT_JSON = json_field(
    "commentJson",
    "Document Format",
    required=True,
    description="The Atlassian Document Format to use, or the raw comment body on Jira Server",
    show=when(jsonParameters=True),
)
_RENDERED_BODY = options(
    "expand",
    "Expand",
    (option("Rendered Body", "renderedBody", "Returns the comment body rendered in HTML"),),
    default="renderedBody",
)

ISSUE_EXPAND_OPTIONS = (
    option("Changelog", "changelog"),
    option("Editmeta", "editmeta"),
    option("Names", "names"),
    option("Operations", "operations"),
    option("Rendered Fields", "renderedFields"),
    option("Schema", "schema"),
    option("Transitions", "transitions"),
    option("Versioned Representations", "versionedRepresentations"),
)

ISSUE_DESCRIPTORS = (
    OperationDescriptor(
        "issue", "create", "Create a new issue",
        (
            JIRA_VERSION,
            options("project", "Project", default="", required=True, load_options="getProjects"),
            options("issueType", "Issue Type", default="", required=True, load_options="getIssueTypes"),
            string("summary", "Summary", required=True),
            collection(
                "additionalFields",
                "Additional Fields",
                _ASSIGNEE,
                multi_options("componentIds", "Components", load_options="getProjectComponents"),
                _CUSTOM_FIELDS,
                _DESCRIPTION,
                _LABELS,
                _SERVER_LABELS,
                _PARENT_ISSUE_KEY,
                _PRIORITY,
                _REPORTER,
                boolean(
                    "updateHistory",
                    "Update History",
                    description="Whether the project in which the issue is created is added to the user's Recently viewed project list",
                ),
            ),
        ),
        writes=True,
    ),
    OperationDescriptor(
        "issue", "update", "Update an issue",
        (
            JIRA_VERSION,
            ISSUE_KEY,
            collection(
                "updateFields",
                "Update Fields",
                _ASSIGNEE,
                _CUSTOM_FIELDS,
                _DESCRIPTION,
                options("issueType", "Issue Type", default="", load_options="getIssueTypes"),
                _LABELS,
                _SERVER_LABELS,
                _PARENT_ISSUE_KEY,
                _PRIORITY,
                _REPORTER,
                string("summary", "Summary"),
                options("statusId", "Status ID", default="", load_options="getTransitions",
                        description="The ID of the issue status"),
            ),
        ),
        writes=True,
    ),
    OperationDescriptor(
        "issue", "get", "Get an issue",
        (
            JIRA_VERSION,
            ISSUE_KEY,
            collection(
                "additionalFields",
                "Additional Fields",
                string("expand", "Expand", description="Comma-separated list of entities to expand"),
                string("fields", "Fields", description="Comma-separated list of fields to return for the issue"),
                boolean("fieldsByKey", "Fields By Key",
                        description="Whether fields in fields are referenced by keys rather than IDs"),
                string("properties", "Properties", description="Comma-separated list of issue properties to return"),
                boolean("updateHistory", "Update History",
                        description="Whether the project of the issue is added to the user's Recently viewed list"),
            ),
        ),
    ),
    OperationDescriptor(
        "issue", "getAll", "Get all issues",
        (
            JIRA_VERSION,
            return_all_field(),
            limit_field(default=50),
            collection(
                "options",
                "Options",
                multi_options("expand", "Expand", ISSUE_EXPAND_OPTIONS),
                string("fields", "Fields", default="*navigable",
                       description="Comma-separated list of fields to return for each issue"),
                string("jql", "JQL", description="A JQL expression"),
            ),
        ),
    ),
    OperationDescriptor(
        "issue", "changelog", "Get issue changelog",
        (JIRA_VERSION, ISSUE_KEY, return_all_field(), limit_field(default=50)),
    ),
    OperationDescriptor(
        "issue", "notify", "Create an email notification for an issue and add it to the mail queue",
        (
            JIRA_VERSION,
            ISSUE_KEY,
            JSON_PARAMETERS,
            collection(
                "additionalFields",
                "Additional Fields",
                string("htmlBody", "HTML Body", description="The HTML body of the email notification"),
                string("subject", "Subject", description="The subject of the email notification"),
                string("textBody", "Text Body", description="The plain text body of the email notification"),
            ),
            fixed_collection(
                "notificationRecipientsUi",
                "Notification Recipients",
                "notificationRecipientsValues",
                boolean("assignee", "Assignee", description="Whether the notification should be sent to the issue's assignees"),
                multi_options("groups", "Groups", load_options="getGroups"),
                boolean("reporter", "Reporter", description="Whether the notification should be sent to the issue's reporter"),
                multi_options("users", "Users", load_options="getUsers"),
                boolean("voters", "Voters", description="Whether the notification should be sent to the issue's voters"),
                boolean("watchers", "Watchers", description="Whether the notification should be sent to the issue's watchers"),
                multiple_values=False,
                show=when(jsonParameters=False),
            ),
            json_field("notificationRecipientsJson", "Notification Recipients", show=when(jsonParameters=True)),
            fixed_collection(
                "notificationRecipientsRestrictionsUi",
                "Notification Recipients Restrictions",
                "notificationRecipientsRestrictionsValues",
                multi_options("groups", "Groups", load_options="getGroups"),
                multiple_values=False,
                show=when(jsonParameters=False),
            ),
            json_field(
                "notificationRecipientsRestrictionsJson",
                "Notification Recipients Restrictions",
                show=when(jsonParameters=True),
            ),
        ),
        writes=True,
    ),
    OperationDescriptor(
        "issue", "transitions", "Return either all transitions or a transition that can be performed by the user on an issue",
        (
            JIRA_VERSION,
            ISSUE_KEY,
            collection(
                "additionalFields",
                "Additional Fields",
                string("expand", "Expand", description="Use expand to include additional information about transitions"),
                boolean("skipRemoteOnlyCondition", "Skip Remote Only Condition",
                        description="Whether transitions with the condition Hide From User Condition are included"),
                options("transitionId", "Transition ID", default="", load_options="getTransitions"),
            ),
        ),
    ),
    OperationDescriptor(
        "issue", "delete", "Delete an issue",
        (
            JIRA_VERSION,
            ISSUE_KEY,
            boolean("deleteSubtasks", "Delete Subtasks"),
        ),
        writes=True,
    ),
)

ISSUE_ATTACHMENT_DESCRIPTORS = (
    OperationDescriptor(
        "issueAttachment", "add", "Add attachment to issue",
        (
            JIRA_VERSION,
            ISSUE_KEY,
            string("binaryPropertyName", "Binary Property", default="data", required=True,
                   description="Name of the binary property holding the file to upload"),
        ),
        writes=True,
    ),
    OperationDescriptor(
        "issueAttachment", "get", "Get an attachment",
        (JIRA_VERSION, ATTACHMENT_ID, DOWNLOAD, BINARY_PROPERTY),
    ),
    OperationDescriptor(
        "issueAttachment", "getAll", "Get all attachments",
        (JIRA_VERSION, ISSUE_KEY, return_all_field(), limit_field(default=50), DOWNLOAD, BINARY_PROPERTY),
    ),
    OperationDescriptor(
        "issueAttachment", "remove", "Remove an attachment",
        (JIRA_VERSION, ATTACHMENT_ID),
        writes=True,
    ),
)

ISSUE_COMMENT_DESCRIPTORS = (
    OperationDescriptor(
        "issueComment", "add", "Add comment to issue",
        (
            JIRA_VERSION,
            ISSUE_KEY,
            JSON_PARAMETERS,
            _COMMENT,
            _COMMENT_JSON,
            collection("options", "Options", _RENDERED_BODY),
        ),
        writes=True,
    ),
    OperationDescriptor(
        "issueComment", "get", "Get a comment",
        (JIRA_VERSION, ISSUE_KEY, COMMENT_ID, collection("options", "Options", _RENDERED_BODY)),
    ),
    OperationDescriptor(
        "issueComment", "getAll", "Get all comments",
        (
            JIRA_VERSION,
            ISSUE_KEY,
            return_all_field(),
            limit_field(default=50),
            collection(
                "options",
                "Options",
                options(
                    "orderBy",
                    "Order By",
                    (option("Created Ascending", "+created"), option("Created Descending", "-created")),
                    default="+created",
                    description="Order comments by the created date",
                ),
                _RENDERED_BODY,
            ),
        ),
    ),
    OperationDescriptor(
        "issueComment", "remove", "Remove a comment",
        (JIRA_VERSION, ISSUE_KEY, COMMENT_ID),
        writes=True,
    ),
    OperationDescriptor(
        "issueComment", "update", "Update a comment",
        (
            JIRA_VERSION,
            ISSUE_KEY,
            COMMENT_ID,
            JSON_PARAMETERS,
            _COMMENT,
            _COMMENT_JSON,
            collection("options", "Options", _RENDERED_BODY),
        ),
        writes=True,
    ),
)

USER_DESCRIPTORS = (
    OperationDescriptor(
        "user", "create", "Create a new user",
        (
            JIRA_VERSION,
            string("username", "Username", required=True),
            string("emailAddress", "Email Address", required=True),
            string("displayName", "Display Name", required=True),
            collection(
                "additionalFields",
                "Additional Fields",
                string("password", "Password",
                       description="Password for the user. If a password is not set, a random password is generated"),
                boolean("notification", "Notification",
                        description="Whether the user is sent a notification email about the account"),
            ),
        ),
        writes=True,
    ),
    OperationDescriptor(
        "user", "delete", "Delete a user",
        (JIRA_VERSION, ACCOUNT_ID),
        writes=True,
    ),
    OperationDescriptor(
        "user", "get", "Retrieve a user",
        (
            JIRA_VERSION,
            ACCOUNT_ID,
            collection(
                "additionalFields",
                "Additional Fields",
                multi_options(
                    "expand",
                    "Expand",
                    (option("Groups", "groups"), option("Application Roles", "applicationRoles")),
                    description="Include more information about the user",
                ),
            ),
        ),
    ),
)

JIRA_DESCRIPTORS = ISSUE_DESCRIPTORS + ISSUE_ATTACHMENT_DESCRIPTORS + ISSUE_COMMENT_DESCRIPTORS + USER_DESCRIPTORS
