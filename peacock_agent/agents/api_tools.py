# =============================================================================
# Finance Agent Tools — Registry of LLM-Callable Operations
# =============================================================================
#
# Each tool pairs a name and description (what the LLM sees) with a
# pydantic input model (the argument schema) and an async handler.
#
#   search_finance_memory  → semantic search over the memory index
#   get_member_details     → POST /api/account/member/{username}
#   get_loan_accounts      → POST /api/account/loan
#   get_members_list       → POST /api/account/loan, as a markdown list
#   search                 → POST /api/search
#   get_transactions       → POST /api/transaction?...
#   create_transaction     → POST /api/transaction/create
#   delete_transaction     → DELETE /api/transaction/{id}
#
# DESIGN DECISION: Tools return strings, never raise for upstream failures.
# Success is pretty-printed JSON; a PeacockApiError becomes
# "Error: <user message>" so the LLM can explain the problem to the user.
# Raw exception detail goes to the server log only. Invalid arguments still
# raise pydantic.ValidationError at FinanceTool.invoke().
# =============================================================================

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from peacock_agent.agents.member_list import format_members_list
from peacock_agent.agents.memory_tools import search_memory
from peacock_agent.errors import PeacockApiError
from peacock_agent.models.requests import (
    CreateTransactionRequest,
    SearchMemoryRequest,
    TransactionFilters,
)
from peacock_agent.services.api_client import PeacockApiClient
from peacock_agent.services.store_registry import MemoryStoreRegistry

logger = logging.getLogger(__name__)


@dataclass
class ToolContext:
    """Services a tool handler may use."""

    registry: MemoryStoreRegistry
    api_client: PeacockApiClient


# ---------------------------------------------------------------------------
# Input Models
# ---------------------------------------------------------------------------


class NoInput(BaseModel):
    pass


class MemberDetailsInput(BaseModel):
    username: str = Field(
        ..., min_length=1,
        description='The username of the member to look up (e.g., "john.doe")',
    )


class MembersListInput(BaseModel):
    include_inactive: bool = Field(
        True, alias="includeInactive",
        description="Whether to include inactive members (default: true)",
    )
    include_loan_balance: bool = Field(
        False, alias="includeLoanBalance",
        description=(
            "Whether to include loan balance information. Leave false for "
            "simple member lists; set true only when the user asks for loan "
            "or financial information"
        ),
    )

    model_config = ConfigDict(populate_by_name=True)


class SearchInput(BaseModel):
    query: str = Field(..., min_length=1, description="The search query string")


class DeleteTransactionInput(BaseModel):
    transaction_id: str = Field(
        ..., alias="transactionId", min_length=1,
        description="The ID of the transaction to delete",
    )

    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _to_json(result: Any) -> str:
    return json.dumps(result, indent=2, ensure_ascii=False, default=str)


async def _call_api(name: str, call: Awaitable[Any]) -> str:
    try:
        return _to_json(await call)
    except PeacockApiError as e:
        logger.error("Tool %s failed: %s", name, e.info.message)
        return f"Error: {e.info.user_message}"


async def _search_finance_memory(ctx: ToolContext, params: SearchMemoryRequest) -> str:
    return await search_memory(ctx.registry, params.query, params.k)


async def _get_member_details(ctx: ToolContext, params: MemberDetailsInput) -> str:
    return await _call_api(
        "get_member_details", ctx.api_client.get_member_details(params.username),
    )


async def _get_loan_accounts(ctx: ToolContext, params: NoInput) -> str:
    return await _call_api("get_loan_accounts", ctx.api_client.get_loan_accounts())


async def _get_members_list(ctx: ToolContext, params: MembersListInput) -> str:
    try:
        payload = await ctx.api_client.get_loan_accounts()
    except PeacockApiError as e:
        logger.error("Tool get_members_list failed: %s", e.info.message)
        return f"Error: {e.info.user_message}"
    return format_members_list(
        payload,
        include_inactive=params.include_inactive,
        include_loan_balance=params.include_loan_balance,
    )


async def _search(ctx: ToolContext, params: SearchInput) -> str:
    return await _call_api("search", ctx.api_client.search(params.query))


async def _get_transactions(ctx: ToolContext, params: TransactionFilters) -> str:
    return await _call_api("get_transactions", ctx.api_client.get_transactions(params))


async def _create_transaction(ctx: ToolContext, params: CreateTransactionRequest) -> str:
    return await _call_api(
        "create_transaction", ctx.api_client.create_transaction(params),
    )


async def _delete_transaction(ctx: ToolContext, params: DeleteTransactionInput) -> str:
    return await _call_api(
        "delete_transaction",
        ctx.api_client.delete_transaction(params.transaction_id),
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FinanceTool:
    name: str
    description: str
    input_model: type[BaseModel]
    handler: Callable[[ToolContext, Any], Awaitable[str]]

    def json_schema(self) -> dict:
        return self.input_model.model_json_schema(by_alias=True)

    async def invoke(self, ctx: ToolContext, arguments: dict | None = None) -> str:
        params = self.input_model.model_validate(arguments or {})
        logger.debug("Invoking tool %s", self.name)
        return await self.handler(ctx, params)


FINANCE_TOOLS: dict[str, FinanceTool] = {
    tool.name: tool
    for tool in (
        FinanceTool(
            name="search_finance_memory",
            description=(
                "Semantic search over club members, vendors, monthly member "
                "summaries and individual transactions. Use for open-ended "
                "questions about history, patterns or who did what."
            ),
            input_model=SearchMemoryRequest,
            handler=_search_finance_memory,
        ),
        FinanceTool(
            name="get_member_details",
            description=(
                "Get detailed information about a member by username: "
                "account information, loan history, club statistics and "
                "membership duration."
            ),
            input_model=MemberDetailsInput,
            handler=_get_member_details,
        ),
        FinanceTool(
            name="get_loan_accounts",
            description=(
                "Get all member accounts with loan information, including "
                "active loans and loan history."
            ),
            input_model=NoInput,
            handler=_get_loan_accounts,
        ),
        FinanceTool(
            name="get_members_list",
            description=(
                "Get ALL members with their status and optionally loan "
                "balances, as a formatted list. Use for \"list members\", "
                "\"show all members\" or \"members list\". Set "
                "includeLoanBalance=true only when the user asks for loan or "
                "balance information. Always prefer this over partial context "
                "when a complete member list is needed."
            ),
            input_model=MembersListInput,
            handler=_get_members_list,
        ),
        FinanceTool(
            name="search",
            description=(
                "Search across members, vendors, loans and transactions when "
                "no specific member username is known."
            ),
            input_model=SearchInput,
            handler=_search,
        ),
        FinanceTool(
            name="get_transactions",
            description=(
                "Get a paginated list of transactions, filtered by account, "
                "transaction type or date range and sorted by date or amount."
            ),
            input_model=TransactionFilters,
            handler=_get_transactions,
        ),
        FinanceTool(
            name="create_transaction",
            description=(
                "Create a deposit, withdrawal, loan, loan repayment, interest "
                "payment, fee or transfer between two accounts. Requires "
                "write access."
            ),
            input_model=CreateTransactionRequest,
            handler=_create_transaction,
        ),
        FinanceTool(
            name="delete_transaction",
            description="Delete a transaction by its ID. Requires write access.",
            input_model=DeleteTransactionInput,
            handler=_delete_transaction,
        ),
    )
}
