# tests/sample_service.py
"""Backend functions and input schemas the sample contracts bind to."""

from typing import Optional

from pydantic import BaseModel, Field

MODULE = "tests.sample_service"


class FlagBody(BaseModel):
    enabled: bool
    note: Optional[str] = None


class FlagParams(BaseModel):
    tenantId: str
    key: str = Field(..., pattern=r"^[a-z][a-z0-9-]*$")


class CheckoutBody(BaseModel):
    planId: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


def get_flag(tenantId, key):
    return {"tenantId": tenantId, "key": key, "enabled": True}


def list_flags(tenant_id, limit=None):
    flags = [{"tenantId": tenant_id, "key": "beta"}, {"tenantId": tenant_id, "key": "dark-mode"}]
    return flags[:limit] if limit else flags


def set_flag(tenantId, key, enabled, note=None):
    return {"tenantId": tenantId, "key": key, "enabled": enabled, "note": note}


async def create_checkout(tenantId, planId, quantity, priceId):
    return {"checkoutId": f"co_{tenantId}_{planId}", "quantity": quantity, "priceId": priceId}


def purge_all():
    return {"purged": True}


def export_report(raw):
    return {"op": raw.op, "tenant": raw.ctx.tenant_id, "format": raw.query.get("format", "csv")}


def ping():
    return "pong"


BACKEND_FUNCTIONS = ("get_flag", "list_flags", "set_flag", "create_checkout", "purge_all", "export_report", "ping")
SCHEMAS = {"FlagBody": FlagBody, "FlagParams": FlagParams, "CheckoutBody": CheckoutBody}
