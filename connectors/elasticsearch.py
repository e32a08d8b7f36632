"""Elasticsearch document connector."""

import logging
from typing import Any

import httpx

from .base import Connector, RequestContext, operation
from .config import ElasticsearchCredentials
from .errors import DataShapeError, ValidationError
from .fields import (
    FieldSpec,
    OperationDescriptor,
    boolean,
    collection,
    fixed_collection,
    json_field,
    limit_field,
    number,
    option,
    options,
    return_all_field,
    string,
    when,
)
from .http import api_request, basic_auth_header, default_headers
from .mapping import QUERY, key_value_pairs, parse_json_parameter, passthrough, split_comma
from .normalize import simplify_document
from .pagination import Page, paginate

logger = logging.getLogger(__name__)

# Largest "from + size" a single search may cover (index.max_result_window default).
MAX_RESULT_WINDOW = 10000
PIT_KEEP_ALIVE = "1m"
# Accepted when opening a point in time, rejected by a search that carries one.
PIT_OPEN_PARAMS = ("routing", "expand_wildcards", "ignore_unavailable", "preference")
PIT_REJECTED_PARAMS = PIT_OPEN_PARAMS + ("allow_no_indices", "ignore_throttled", "ccs_minimize_roundtrips")


# ============================================================================
# Field tables
# ============================================================================

def _index_id(description: str) -> FieldSpec:
    return string("indexId", "Index ID", required=True, description=description)


def _document_id(description: str) -> FieldSpec:
    return string("documentId", "Document ID", required=True, description=description)


_SIMPLE = boolean(
    "simple",
    "Simple",
    default=True,
    description="Whether to return a simplified version of the response instead of the raw data",
)

_DATA_TO_SEND = options(
    "dataToSend",
    "Data to Send",
    (
        option("Define Below for Each Column", "defineBelow", "Set the value for each destination column"),
        option(
            "Auto-map Input Data to Columns",
            "autoMapInputData",
            "Use when node input properties match destination column names",
        ),
    ),
    default="defineBelow",
    description="Whether to insert the input data this node receives in the new row",
)

_INPUTS_TO_IGNORE = string(
    "inputsToIgnore",
    "Inputs to Ignore",
    description="List of input properties to avoid sending, separated by commas. Leave empty to send all properties",
    show=when(dataToSend="autoMapInputData"),
)

_FIELDS_TO_SEND = fixed_collection(
    "fieldsUi",
    "Fields to Send",
    "fieldValues",
    string("fieldId", "Field Name"),
    string("fieldValue", "Field Value"),
    show=when(dataToSend="defineBelow"),
)

_TIMEOUT = string(
    "timeout",
    "Timeout",
    default="1m",
    description="Period to wait for active shards. Defaults to 1m (one minute)",
)

_STORED_FIELDS = boolean(
    "stored_fields",
    "Stored Fields",
    description="If true, retrieve the document fields stored in the index rather than the document _source",
)

_GET_OPTIONS = collection(
    "options",
    "Options",
    string("_source_excludes", "Source Excludes",
           description="Comma-separated list of source fields to exclude from the response"),
    string("_source_includes", "Source Includes",
           description="Comma-separated list of source fields to include in the response"),
    _STORED_FIELDS,
)

_SEARCH_OPTIONS = collection(
    "options",
    "Options",
    boolean("allow_no_indices", "Allow No Indices", default=True,
            description="If false, return an error if any wildcard, alias or _all value targets only missing or closed indices"),
    boolean("allow_partial_search_results", "Allow Partial Search Results", default=True,
            description="If true, return partial results if there are shard request timeouts or shard failures"),
    number("batched_reduce_size", "Batched Reduce Size", default=512, min_value=2,
           description="Number of shard results that should be reduced at once on the coordinating node"),
    boolean("ccs_minimize_roundtrips", "CCS Minimize Roundtrips", default=True,
            description="If true, minimize network round-trips for cross-cluster search requests"),
    string("docvalue_fields", "Doc Value Fields",
           description="Comma-separated list of fields to return as the docvalue representation of a field for each hit"),
    options(
        "expand_wildcards",
        "Expand Wildcards",
        (
            option("All", "all"),
            option("Closed", "closed"),
            option("Hidden", "hidden"),
            option("None", "none"),
            option("Open", "open"),
        ),
        default="open",
        description="Type of index that wildcard expressions can match",
    ),
    boolean("explain", "Explain",
            description="If true, return detailed information about score computation as part of a hit"),
    boolean("ignore_throttled", "Ignore Throttled", default=True,
            description="If true, concrete, expanded or aliased indices are ignored when frozen"),
    boolean("ignore_unavailable", "Ignore Unavailable",
            description="If true, missing or closed indices are not included in the response"),
    number("max_concurrent_shard_requests", "Max Concurrent Shard Requests", default=5,
           description="Number of shard requests per node this search executes concurrently"),
    number("pre_filter_shard_size", "Pre-Filter Shard Size", default=1, min_value=1,
           description="Threshold that enforces a pre-filter roundtrip to prefilter search shards"),
    json_field("query", "Query", description="Query in the Elasticsearch Query DSL, e.g. {\"query\": {\"match_all\": {}}}"),
    boolean("request_cache", "Request Cache",
            description="If true, the caching of search results is enabled for requests where size is 0"),
    string("routing", "Routing", description="Target this primary shard"),
    options(
        "search_type",
        "Search Type",
        (
            option("DFS Query Then Fetch", "dfs_query_then_fetch"),
            option("Query Then Fetch", "query_then_fetch"),
        ),
        default="query_then_fetch",
        description="How distributed term frequencies are calculated for relevance scoring",
    ),
    boolean("seq_no_primary_term", "Sequence Number and Primary Term",
            description="If true, return the sequence number and primary term of the last modification of each hit"),
    string("sort", "Sort", description="Comma-separated list of field:direction pairs"),
    string("stats", "Stats", description="Tag of the request for logging and statistical purposes"),
    _STORED_FIELDS,
    number("terminate_after", "Terminate After", description="Max number of documents to collect for each shard"),
    _TIMEOUT,
    boolean("track_scores", "Track Scores",
            description="If true, calculate and return document scores, even if the scores are not used for sorting"),
    number("track_total_hits", "Track Total Hits", default=10000,
           description="Number of hits matching the query to count accurately"),
    boolean("version", "Version", description="If true, return document version as part of a hit"),
)

_CREATE_ADDITIONAL_FIELDS = collection(
    "additionalFields",
    "Additional Fields",
    string("documentId", "Document ID", description="ID of the document to create and add to the index"),
    string("routing", "Routing", description="Target this primary shard"),
    _TIMEOUT,
)

DOCUMENT_DESCRIPTORS = (
    OperationDescriptor(
        "document", "create", "Create a document",
        (
            _index_id("ID of the index to add the document to"),
            _DATA_TO_SEND,
            _INPUTS_TO_IGNORE,
            _FIELDS_TO_SEND,
            _CREATE_ADDITIONAL_FIELDS,
        ),
        writes=True,
    ),
    OperationDescriptor(
        "document", "delete", "Delete a document",
        (
            _index_id("ID of the index containing the document to delete"),
            _document_id("ID of the document to delete"),
        ),
        writes=True,
    ),
    OperationDescriptor(
        "document", "get", "Get a document",
        (
            _index_id("ID of the index containing the document to retrieve"),
            _document_id("ID of the document to retrieve"),
            _SIMPLE,
            _GET_OPTIONS,
        ),
    ),
    OperationDescriptor(
        "document", "getAll", "Get all documents",
        (
            _index_id("ID of the index containing the documents to retrieve"),
            return_all_field(),
            limit_field(default=50),
            _SIMPLE,
            _SEARCH_OPTIONS,
        ),
    ),
    OperationDescriptor(
        "document", "update", "Update a document",
        (
            _index_id("ID of the document to update"),
            _document_id("ID of the document to update"),
            _DATA_TO_SEND,
            _INPUTS_TO_IGNORE,
            _FIELDS_TO_SEND,
        ),
        writes=True,
    ),
)

_CREATE_QUERY = passthrough(("routing", "timeout"), QUERY)
_GET_QUERY = passthrough((spec.name for spec in _GET_OPTIONS.fields), QUERY, keep_falsy=True)
_SEARCH_QUERY = passthrough(
    (spec.name for spec in _SEARCH_OPTIONS.fields if spec.name != "query"), QUERY, keep_falsy=True
)


# ============================================================================
# Request building
# ============================================================================

def document_body(ctx: RequestContext) -> dict[str, Any]:
    """Build the document from either the input item or the explicit field list."""
    if ctx.param("dataToSend") == "autoMapInputData":
        ignored = set(split_comma(ctx.param("inputsToIgnore") or ""))
        return {key: value for key, value in ctx.item.json.items() if key not in ignored}
    rows = (ctx.param("fieldsUi") or {}).get("fieldValues", [])
    return key_value_pairs(rows, "fieldId", "fieldValue")


def search_body(search_options: dict[str, Any]) -> dict[str, Any]:
    if not search_options.get("query"):
        return {}
    body = parse_json_parameter(search_options["query"], "Query must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Query must be a JSON object")
    return dict(body)


def sort_clauses(sort: str) -> list[dict[str, str]]:
    """``"date:desc,name"`` -> ``[{"date": "desc"}, {"name": "asc"}]``."""
    clauses = []
    for pair in split_comma(sort):
        field_name, _, direction = pair.partition(":")
        clauses.append({field_name: direction or "asc"})
    return clauses


def hits_of(response: dict[str, Any]) -> list[dict[str, Any]]:
    try:
        return response["hits"]["hits"]
    except (KeyError, TypeError):
        raise DataShapeError("Search response has no hits")


class ElasticsearchConnector(Connector):
    name = "elasticsearch"
    display_name = "Elasticsearch"
    credentials_class = ElasticsearchCredentials
    descriptors = DOCUMENT_DESCRIPTORS

    async def request(
        self,
        ctx: RequestContext,
        method: str,
        endpoint: str,
        body: Any = None,
        query: dict[str, Any] | None = None,
    ) -> Any:
        credentials: ElasticsearchCredentials = ctx.credentials
        return await api_request(
            method,
            f"{credentials.base_url}{endpoint}",
            headers=default_headers(Authorization=basic_auth_header(credentials.username, credentials.password)),
            params=query,
            json_body=body,
            verify=not credentials.ignore_ssl_issues,
        )

    @operation("document", "create")
    async def create_document(self, ctx: RequestContext):
        index_id = ctx.param("indexId")
        additional_fields = ctx.param("additionalFields")
        _, query = ctx.apply(_CREATE_QUERY, additional_fields)
        document_id = additional_fields.get("documentId")
        if document_id:
            return await self.request(ctx, "PUT", f"/{index_id}/_doc/{document_id}", document_body(ctx), query)
        return await self.request(ctx, "POST", f"/{index_id}/_doc", document_body(ctx), query)

    @operation("document", "delete")
    async def delete_document(self, ctx: RequestContext):
        return await self.request(ctx, "DELETE", f"/{ctx.param('indexId')}/_doc/{ctx.param('documentId')}")

    @operation("document", "get")
    async def get_document(self, ctx: RequestContext):
        _, query = ctx.apply(_GET_QUERY, ctx.param("options"))
        document = await self.request(
            ctx, "GET", f"/{ctx.param('indexId')}/_doc/{ctx.param('documentId')}", query=query
        )
        return simplify_document(document) if ctx.param("simple") else document

    @operation("document", "getAll")
    async def get_all_documents(self, ctx: RequestContext):
        index_id = ctx.param("indexId")
        search_options = ctx.param("options")
        body = search_body(search_options)
        _, query = ctx.apply(_SEARCH_QUERY, search_options)
        return_all = ctx.param("returnAll")
        limit = ctx.param("limit")

        if return_all or limit > MAX_RESULT_WINDOW:
            hits = await self._search_all(ctx, index_id, body, query, return_all, limit)
        else:
            query["size"] = limit
            hits = hits_of(await self.request(ctx, "GET", f"/{index_id}/_search", body or None, query))

        if ctx.param("simple"):
            return [simplify_document(hit) for hit in hits]
        return hits

    @operation("document", "update")
    async def update_document(self, ctx: RequestContext):
        endpoint = f"/{ctx.param('indexId')}/_update/{ctx.param('documentId')}"
        return await self.request(ctx, "POST", endpoint, {"doc": document_body(ctx)})

    async def _search_all(
        self,
        ctx: RequestContext,
        index_id: str,
        body: dict[str, Any],
        query: dict[str, Any],
        return_all: bool,
        limit: int | None,
    ) -> list[dict[str, Any]]:
        """Page through a point in time with ``search_after``; the PIT is always closed."""
        pit_query = {"keep_alive": PIT_KEEP_ALIVE}
        pit_query.update({key: query[key] for key in PIT_OPEN_PARAMS if key in query})
        search_query = {key: value for key, value in query.items() if key not in PIT_REJECTED_PARAMS}

        sort = sort_clauses(search_query.pop("sort")) if search_query.get("sort") else []
        sort = body.pop("sort", None) or sort
        sort = (sort if isinstance(sort, list) else [sort]) + [{"_shard_doc": "asc"}]

        pit = await self.request(ctx, "POST", f"/{index_id}/_pit", query=pit_query)
        pit_id = pit.get("id")
        if not pit_id:
            raise DataShapeError("Point in time response has no id")
        logger.debug("Opened point in time on %s", index_id)

        async def fetch_page(search_after, size):
            nonlocal pit_id
            page_body = {
                **body,
                "size": size,
                "pit": {"id": pit_id, "keep_alive": PIT_KEEP_ALIVE},
                "sort": sort,
            }
            if search_after is not None:
                page_body["search_after"] = search_after
            response = await self.request(ctx, "GET", "/_search", page_body, search_query)
            pit_id = response.get("pit_id", pit_id)
            hits = hits_of(response)
            return Page(hits, hits[-1].get("sort") if hits else None)

        try:
            return await paginate(fetch_page, return_all=return_all, limit=limit, page_size=MAX_RESULT_WINDOW)
        finally:
            try:
                await self.request(ctx, "DELETE", "/_pit", {"id": pit_id})
                logger.debug("Closed point in time on %s", index_id)
            except httpx.HTTPError as e:
                logger.warning("Failed to close point in time on %s: %s", index_id, e)
