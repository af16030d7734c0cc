"""Allow-list of logical endpoints the proxy forwards to the pool provider.

Clients only ever name a logical endpoint. Each entry names the typed
``PoolApiClient`` accessor that serves it, the HTTP methods it answers to,
and the access rules the proxy enforces before forwarding.
"""

from dataclasses import dataclass, field

GET = frozenset({"GET"})


@dataclass(frozen=True)
class LogicalEndpoint:
    name: str
    path: str
    accessor: str
    methods: frozenset[str] = GET
    requires_currency: bool = False
    admin_only: bool = False
    scoped: bool = False
    path_params: tuple[str, ...] = field(default_factory=tuple)
    paginated: bool = False

    @property
    def accepts_body(self) -> bool:
        return bool(self.methods & {"POST", "PUT", "PATCH"})


ENDPOINTS: dict[str, LogicalEndpoint] = {
    entry.name: entry
    for entry in (
        LogicalEndpoint(
            name="active-workers",
            path="/pool/active-workers/{currency}",
            accessor="get_active_workers",
            requires_currency=True,
            scoped=True,
        ),
        LogicalEndpoint(
            name="hashrate-history",
            path="/pool/hashrate-efficiency/{currency}",
            accessor="get_hashrate_efficiency",
            requires_currency=True,
            scoped=True,
        ),
        LogicalEndpoint(
            name="workers",
            path="/pool/workers/{currency}",
            accessor="get_workers",
            requires_currency=True,
            scoped=True,
        ),
        LogicalEndpoint(
            name="revenue",
            path="/pool/revenue/{currency}",
            accessor="get_revenue",
            requires_currency=True,
            scoped=True,
        ),
        LogicalEndpoint(
            name="summary",
            path="/pool/summary/{currency}",
            accessor="get_summary",
            requires_currency=True,
            scoped=True,
        ),
        LogicalEndpoint(
            name="workspace",
            path="/workspace",
            accessor="get_workspace",
            admin_only=True,
        ),
        LogicalEndpoint(
            name="subaccounts",
            path="/pool/subaccounts",
            accessor="list_all_subaccounts",
            admin_only=True,
            paginated=True,
        ),
        LogicalEndpoint(
            name="group-create",
            path="/workspace/groups",
            accessor="create_group",
            methods=frozenset({"POST"}),
            admin_only=True,
        ),
        LogicalEndpoint(
            name="group-get",
            path="/workspace/groups/{group_id}",
            accessor="get_group",
            admin_only=True,
            path_params=("group_id",),
        ),
        LogicalEndpoint(
            name="group-update",
            path="/workspace/groups/{group_id}",
            accessor="update_group",
            methods=frozenset({"PUT", "PATCH"}),
            admin_only=True,
            path_params=("group_id",),
        ),
        LogicalEndpoint(
            name="group-delete",
            path="/workspace/groups/{group_id}",
            accessor="delete_group",
            methods=frozenset({"DELETE"}),
            admin_only=True,
            path_params=("group_id",),
        ),
        LogicalEndpoint(
            name="group-subaccounts",
            path="/pool/groups/{group_id}/subaccounts",
            accessor="list_group_subaccounts",
            admin_only=True,
            path_params=("group_id",),
        ),
        LogicalEndpoint(
            name="group-subaccount-get",
            path="/pool/groups/{group_id}/subaccounts/{subaccount_name}",
            accessor="get_group_subaccount",
            admin_only=True,
            path_params=("group_id", "subaccount_name"),
        ),
        LogicalEndpoint(
            name="group-subaccount-add",
            path="/pool/groups/{group_id}/subaccounts",
            accessor="add_group_subaccount",
            methods=frozenset({"POST"}),
            admin_only=True,
            path_params=("group_id",),
        ),
        LogicalEndpoint(
            name="group-subaccount-remove",
            path="/pool/groups/{group_id}/subaccounts/{subaccount_name}",
            accessor="remove_group_subaccount",
            methods=frozenset({"DELETE"}),
            admin_only=True,
            path_params=("group_id", "subaccount_name"),
        ),
    )
}


def supported_endpoints(method: str | None = None) -> list[str]:
    if method is None:
        return sorted(ENDPOINTS)
    return sorted(name for name, entry in ENDPOINTS.items() if method.upper() in entry.methods)
