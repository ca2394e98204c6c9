from dataclasses import dataclass, replace

from .merkle_map import DEFAULT_DEPTH

# The number of addresses that can be added to the whitelist
MAX_ADDRESSES = 100


@dataclass(frozen=True)
class RegistryConfig:
    # Capacity of the whitelist, numAddresses never exceeds it
    max_addresses: int
    # Height of both merkle maps, keys are truncated to this many bits
    tree_depth: int

    @staticmethod
    def default() -> "RegistryConfig":
        return RegistryConfig(max_addresses=MAX_ADDRESSES, tree_depth=DEFAULT_DEPTH)

    def validate(self):
        assert self.max_addresses > 0
        assert 0 < self.tree_depth <= DEFAULT_DEPTH

    def replace(self, **kwarg) -> "RegistryConfig":
        return replace(self, **kwarg)
