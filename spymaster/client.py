import logging

from .crypto import Identity, whitelist_payload
from .merkle_map import MerkleMap
from .spymaster import SpyMaster, Status

logger = logging.getLogger(__name__)


class RegistryClient:
    """
    Keeps full copies of the nullifier and message maps next to a registry
    and uses them to build the witnesses the registry asks for.

    The local maps are only written after the registry accepted a
    transition, so a rejected call leaves both sides as they were.
    """

    def __init__(self, contract: SpyMaster):
        self.contract = contract
        self.depth = contract.config.tree_depth
        self.nullifier_map = MerkleMap(self.depth)
        self.message_map = MerkleMap(self.depth)

    def key(self, spy: Identity) -> int:
        return spy.digest & ((1 << self.depth) - 1)

    def initialize(self):
        self.contract.initialize_state(
            self.nullifier_map.get_root(), self.message_map.get_root()
        )

    def whitelist(self, spy: Identity, admin: Identity | None = None):
        key = self.key(spy)
        witness = self.nullifier_map.get_witness(key)
        signature = admin.sign(whitelist_payload(key)) if admin else None
        self.contract.add_eligible_address(witness, signature)
        self.nullifier_map.check_and_set(key, Status.UNREGISTERED, Status.WHITELISTED)

    def submit(self, spy: Identity, message: int):
        key = self.key(spy)
        self.contract.update_messages(
            self.nullifier_map.get_witness(key),
            self.message_map.get_witness(key),
            message,
        )
        self.nullifier_map.check_and_set(key, Status.WHITELISTED, Status.MESSAGE_SET)
        self.message_map.check_and_set(key, 0, message)

    def status(self, spy: Identity) -> Status:
        return Status(self.nullifier_map.get(self.key(spy)))

    def message(self, spy: Identity) -> int:
        return self.message_map.get(self.key(spy))

    def in_sync(self) -> bool:
        synced = (
            self.nullifier_map.get_root() == self.contract.nullifier_root
            and self.message_map.get_root() == self.contract.message_root
        )
        if not synced:
            logger.warning("local maps diverged from the registry roots")
        return synced
