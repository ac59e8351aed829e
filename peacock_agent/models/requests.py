# =============================================================================
# Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Shapes of data coming INTO the service, whether from an HTTP client
# (POST /memory/search) or from the agent's tool calls (agents/api_tools.py).
#
# Upstream Peacock API payloads use camelCase. Models that are forwarded
# upstream declare camelCase aliases and accept either spelling
# (populate_by_name); to_upstream() renders the wire form.
# =============================================================================

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from peacock_agent.db.models import TransactionType

SortField = Literal["occurredAt", "createdAt", "amount"]
SortOrder = Literal["asc", "desc"]


class SearchMemoryRequest(BaseModel):
    """
    Request body for POST /memory/search, and input of the
    search_finance_memory tool.

    Example:
        {"query": "How much did Asha deposit in March?", "k": 6}
    """

    query: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Natural language question about members, vendors or transactions",
        examples=["Who repaid loans in March 2024?"],
    )
    k: int = Field(
        default=6,
        ge=1,
        le=12,
        description="Number of memory documents to return (1-12)",
    )


class TransactionFilters(BaseModel):
    """Optional filters for listing transactions. Unset filters are omitted."""

    page: int | None = Field(default=None, ge=1, description="Page number (default: 1)")
    limit: int | None = Field(
        default=None, ge=1, le=100,
        description="Transactions per page (default: 10, max: 100)",
    )
    account_id: str | None = Field(
        default=None, alias="accountId",
        description="Filter by account ID (from or to)",
    )
    # LOAN_ALL is a filter-only pseudo type covering LOAN and LOAN_REPAYMENT.
    transaction_type: TransactionType | Literal["LOAN_ALL"] | None = Field(
        default=None, alias="transactionType",
    )
    start_date: str | None = Field(
        default=None, alias="startDate",
        description="Start of date range (YYYY-MM-DD)",
    )
    end_date: str | None = Field(
        default=None, alias="endDate",
        description="End of date range (YYYY-MM-DD)",
    )
    sort_field: SortField | None = Field(default=None, alias="sortField")
    sort_order: SortOrder | None = Field(default=None, alias="sortOrder")

    model_config = ConfigDict(populate_by_name=True)

    def to_query_params(self) -> dict[str, str]:
        """Set filters only, camelCase keys, stringified values."""
        return {
            key: str(value)
            for key, value in self.model_dump(
                mode="json", by_alias=True, exclude_none=True,
            ).items()
        }


class CreateTransactionRequest(BaseModel):
    """Body forwarded to POST /api/transaction/create."""

    from_id: str = Field(
        ..., alias="fromId", min_length=1,
        description="Source account ID (the account sending money)",
    )
    to_id: str = Field(
        ..., alias="toId", min_length=1,
        description="Destination account ID (the account receiving money)",
    )
    amount: float = Field(..., gt=0, description="Transaction amount (must be positive)")
    transaction_type: TransactionType = Field(..., alias="transactionType")
    occurred_at: str | None = Field(
        default=None, alias="occurredAt",
        description="ISO timestamp; the upstream API defaults to now",
    )
    description: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    def to_upstream(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
