"""Pydantic parameter models for FreshBooks MCP authentication tools."""

from pydantic import BaseModel, Field


class ExchangeCodeParams(BaseModel):
    """Parameters for auth_exchange_code tool.

    Completes the authorization code flow with the code FreshBooks put on
    the redirect URL.
    """

    code: str = Field(
        ...,
        min_length=1,
        description="Authorization code from the FreshBooks redirect",
    )
    state: str | None = Field(
        default=None,
        description="State value returned on the redirect (from auth_get_url)",
    )


class SetActiveAccountParams(BaseModel):
    """Parameters for auth_set_account tool.

    Selects which FreshBooks account and business subsequent calls act on.
    """

    account_id: str = Field(
        ...,
        min_length=1,
        description="FreshBooks account ID",
    )
    business_id: int | None = Field(
        default=None,
        ge=1,
        description="FreshBooks business ID",
    )
