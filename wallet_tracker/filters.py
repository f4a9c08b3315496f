from __future__ import annotations

from wallet_tracker.config import FilterConfig


class FilterPipeline:
    """
    Admit/drop decisions for scanned values. Checks run cheapest and most
    decisive first; amounts are plain ints so 18+ decimal values never lose
    precision.
    """

    def __init__(self, config: FilterConfig) -> None:
        self.config = config

    def admit_token(self, chain: str, token: str, raw_amount: int) -> bool:
        cfg = self.config
        chain_l = (chain or "").lower()
        token_l = (token or "").lower()

        if token_l in cfg.token_blacklist.get(chain_l, ()):
            return False
        if cfg.skip_zero_value and raw_amount == 0:
            return False
        if raw_amount < cfg.min_erc20_raw:
            return False
        if cfg.allow_all_tokens:
            return True
        whitelist = cfg.token_whitelist.get(chain_l)
        if whitelist:
            return token_l in whitelist
        # no whitelist for this chain: open policy
        return True

    def admit_native(self, value_wei: int) -> bool:
        cfg = self.config
        if cfg.skip_zero_value and value_wei == 0:
            return False
        if value_wei < cfg.min_native_wei:
            return False
        return True


__all__ = ["FilterPipeline"]
