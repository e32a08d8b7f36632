"""Raindrop.io bookmark connector."""

import logging
from typing import Any

from .base import Connector, RequestContext, operation, option_loader, sort_options
from .config import RaindropCredentials
from .errors import ValidationError
from .fields import OperationDescriptor, boolean, collection, limit_field, number, options, return_all_field, string
from .http import api_request, default_headers
from .mapping import FieldMapping, passthrough, split_comma
from .normalize import response_field
from .pagination import Page, paginate

logger = logging.getLogger(__name__)

API_URL = "https://api.raindrop.io/rest/v1"
# Largest page the raindrops endpoint serves.
PAGE_SIZE = 50


# ============================================================================
# Field tables
# ============================================================================

def _bookmark_fields(title_description: str) -> tuple:
    return (
        boolean("important", "Important", description="Whether this bookmark is marked as favorite"),
        number("order", "Order", default=0,
               description="Sort order for the bookmark. For example, to move it to first place, enter 0"),
        string("tags", "Tags", description="Bookmark tags. Multiple tags can be set separated by comma"),
        string("title", "Title", description=title_description),
    )


def _bookmark_id(description: str):
    return string("bookmarkId", "Bookmark ID", required=True, description=description)


BOOKMARK_DESCRIPTORS = (
    OperationDescriptor(
        "bookmark", "create", "Create a bookmark",
        (
            options("collectionId", "Collection ID", default="", load_options="getCollections"),
            string("link", "Link", required=True, description="Link of the bookmark to be created"),
            collection("additionalFields", "Additional Fields", *_bookmark_fields("Title of the bookmark to create")),
        ),
        writes=True,
    ),
    OperationDescriptor(
        "bookmark", "delete", "Delete a bookmark",
        (_bookmark_id("The ID of the bookmark to delete"),),
        writes=True,
    ),
    OperationDescriptor(
        "bookmark", "get", "Get a bookmark",
        (_bookmark_id("The ID of the bookmark to retrieve"),),
    ),
    OperationDescriptor(
        "bookmark", "getAll", "Get all bookmarks of a collection",
        (
            options("collectionId", "Collection ID", default="", required=True, load_options="getCollections",
                    description="The ID of the collection from which to retrieve all bookmarks"),
            return_all_field(),
            limit_field(default=5, max_value=10),
        ),
    ),
    OperationDescriptor(
        "bookmark", "update", "Update a bookmark",
        (
            _bookmark_id("The ID of the bookmark to update"),
            collection(
                "updateFields",
                "Update Fields",
                options("collectionId", "Collection ID", default="", load_options="getCollections"),
                *_bookmark_fields("Title of the bookmark"),
            ),
        ),
        writes=True,
    ),
)


# Collections only hold what the caller supplied, so a false "important" or a zero
# "order" is an explicit value.
BOOKMARK_BODY = passthrough(("important", "order", "title"), keep_falsy=True) + (
    FieldMapping("tags", "tags", transform=split_comma),
    FieldMapping("collectionId", "collection.$id"),
)


class RaindropConnector(Connector):
    name = "raindrop"
    display_name = "Raindrop"
    credentials_class = RaindropCredentials
    descriptors = BOOKMARK_DESCRIPTORS

    async def request(
        self,
        ctx: RequestContext,
        method: str,
        endpoint: str,
        body: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
    ) -> Any:
        credentials: RaindropCredentials = ctx.credentials
        return await api_request(
            method,
            f"{API_URL}{endpoint}",
            headers=default_headers(Authorization=f"Bearer {credentials.access_token}"),
            params=query,
            json_body=body,
        )

    @operation("bookmark", "create")
    async def create_bookmark(self, ctx: RequestContext):
        ctx.body["link"] = ctx.param("link")
        body, _ = ctx.apply(BOOKMARK_BODY, {**ctx.param("additionalFields"), "collectionId": ctx.param("collectionId")})
        return response_field(await self.request(ctx, "POST", "/raindrop", body), "item")

    @operation("bookmark", "delete")
    async def delete_bookmark(self, ctx: RequestContext):
        return await self.request(ctx, "DELETE", f"/raindrop/{ctx.param('bookmarkId')}")

    @operation("bookmark", "get")
    async def get_bookmark(self, ctx: RequestContext):
        return response_field(await self.request(ctx, "GET", f"/raindrop/{ctx.param('bookmarkId')}"), "item")

    @operation("bookmark", "getAll")
    async def get_all_bookmarks(self, ctx: RequestContext):
        endpoint = f"/raindrops/{ctx.param('collectionId')}"

        async def fetch_page(page, size):
            response = await self.request(ctx, "GET", endpoint, query={"page": page, "perpage": size})
            items = response_field(response, "items")
            return Page(items, page + 1 if len(items) == size else None)

        return await paginate(
            fetch_page,
            return_all=ctx.param("returnAll"),
            limit=ctx.param("limit"),
            page_size=PAGE_SIZE,
            start=0,
            shrink_last_page=False,
        )

    @operation("bookmark", "update")
    async def update_bookmark(self, ctx: RequestContext):
        update_fields = ctx.param("updateFields")
        if not update_fields:
            raise ValidationError("Please enter at least one field to update")
        body, _ = ctx.apply(BOOKMARK_BODY, update_fields)
        return response_field(
            await self.request(ctx, "PUT", f"/raindrop/{ctx.param('bookmarkId')}", body), "item"
        )

    @option_loader("getCollections")
    async def load_collections(self, ctx: RequestContext):
        collections = response_field(await self.request(ctx, "GET", "/collections"), "items")
        return sort_options([{"name": entry["title"], "value": entry["_id"]} for entry in collections])
