"""Hub (tenant) registry.

Every branded hub shares the same infrastructure. A request names its hub by id;
routers resolve that id to a TenantContext once and hand it to the services, which
never look up "the current hub" on their own.
"""
from dataclasses import dataclass

DEFAULT_ACCOUNT_PREFIX = "PTXT"


@dataclass(frozen=True)
class TenantContext:
    hub_id: int
    slug: str
    name: str
    account_prefix: str
    sender_name: str


HUBS: dict[int, TenantContext] = {
    0: TenantContext(hub_id=0, slug="percytech", name="PercyTech", account_prefix="PERCY", sender_name="PercyTech"),
    1: TenantContext(hub_id=1, slug="gnymble", name="Gnymble", account_prefix="GNYM", sender_name="Gnymble"),
    2: TenantContext(hub_id=2, slug="percymd", name="PercyMD", account_prefix="PMD", sender_name="PercyMD"),
    3: TenantContext(hub_id=3, slug="percytext", name="PercyText", account_prefix="PTXT", sender_name="PercyText"),
}


def get_tenant(hub_id: int | None) -> TenantContext | None:
    if hub_id is None:
        return None
    return HUBS.get(hub_id)


def tenant_for_hub_id(hub_id: int) -> TenantContext:
    """Tenant for a hub id stored on a record. Unregistered ids still get a usable context."""
    known = HUBS.get(hub_id)
    if known:
        return known
    return TenantContext(
        hub_id=hub_id,
        slug=f"hub-{hub_id}",
        name="SMS Hub",
        account_prefix=DEFAULT_ACCOUNT_PREFIX,
        sender_name="SMS Hub",
    )
