from wallet_tracker.providers.chain_client import ChainClient
from wallet_tracker.providers.probe import probe_rpc
from wallet_tracker.providers.rpc_health import ProbeAttempt, RpcHealthLedger
from wallet_tracker.providers.selector import ActiveProvider, ActiveProviders, ProviderSelector, select_providers

__all__ = [
    "ChainClient",
    "probe_rpc",
    "ProbeAttempt",
    "RpcHealthLedger",
    "ActiveProvider",
    "ActiveProviders",
    "ProviderSelector",
    "select_providers",
]
