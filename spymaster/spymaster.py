"""
The registry: a capped whitelist where every whitelisted address may store
exactly one message.

Only two roots and two counters are kept. The nullifier map holds the status
of every address, the message map holds the message each address stored.
Callers prove the current value of a key by handing in a witness: the
registry replays the witness with the value the transition requires and
checks the result against the stored root, then replays it again with the new
value to obtain the next root. Nothing is written before every check passed.
"""

import functools
import logging
import threading
from dataclasses import dataclass, replace
from enum import IntEnum

from .config import RegistryConfig
from .crypto import is_field_element, verify_signature, whitelist_payload
from .flags import validate_message
from .merkle_map import MerkleMapWitness, RootMismatch

logger = logging.getLogger(__name__)


class Status(IntEnum):
    """
    Value stored per address in the nullifier map. Only ever moves forward.
    """

    UNREGISTERED = 0
    WHITELISTED = 1
    MESSAGE_SET = 2


# value of an address in the message map before it stored a message
UNSET_MESSAGE = 0


@dataclass(frozen=True)
class RegistryState:
    nullifier_root: int
    message_root: int
    # number of addresses ever whitelisted
    num_addresses: int = 0
    # number of messages ever accepted
    num_messages: int = 0

    def replace(self, **kwarg) -> "RegistryState":
        return replace(self, **kwarg)


def _transition(method):
    # Mutators run one at a time and report rejections before re-raising.
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            try:
                return method(self, *args, **kwargs)
            except RegistryError as e:
                logger.warning("rejected %s: %s", method.__name__, e)
                raise

    return wrapper


class SpyMaster:
    validate_message = staticmethod(validate_message)

    def __init__(
        self, config: RegistryConfig | None = None, admin: bytes | None = None
    ):
        self.config = config or RegistryConfig.default()
        self.config.validate()
        # raw Ed25519 public key whose signature authorizes whitelisting,
        # anyone may whitelist when None
        self.admin = admin
        self._state: RegistryState | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> RegistryState:
        if self._state is None:
            raise NotInitialized
        return self._state

    @property
    def initialized(self) -> bool:
        return self._state is not None

    @property
    def nullifier_root(self) -> int:
        return self.state.nullifier_root

    @property
    def message_root(self) -> int:
        return self.state.message_root

    @property
    def num_addresses(self) -> int:
        return self.state.num_addresses

    @property
    def num_messages(self) -> int:
        return self.state.num_messages

    def _check_depth(self, *witnesses: MerkleMapWitness):
        for witness in witnesses:
            if witness.depth != self.config.tree_depth:
                raise ValueError(
                    f"witness depth {witness.depth} != tree depth {self.config.tree_depth}"
                )

    def _signed_by_admin(
        self, witness: MerkleMapWitness, signature: bytes | None
    ) -> bool:
        if signature is None:
            return False
        return verify_signature(
            self.admin, signature, whitelist_payload(witness.key)
        )

    @_transition
    def initialize_state(self, null_root: int, message_root: int):
        """
        Set the roots of the two empty maps.

        The empty roots depend on the map construction, so they are computed
        by the deployer and handed in once. The registry refuses to be
        initialized twice.
        """
        if self._state is not None:
            raise AlreadyInitialized
        if not (is_field_element(null_root) and is_field_element(message_root)):
            raise ValueError("initial roots must be field elements")

        self._state = RegistryState(
            nullifier_root=null_root, message_root=message_root
        )
        logger.info("registry initialized")

    @_transition
    def add_eligible_address(
        self, witness: MerkleMapWitness, signature: bytes | None = None
    ):
        """
        When the registry has an admin, `signature` must be the admin's
        signature over `whitelist_payload(witness.key)`.
        """
        state = self.state
        self._check_depth(witness)

        if self.admin is not None and not self._signed_by_admin(witness, signature):
            raise NotAdmin

        # STEP 1: check the whitelist still has room
        if state.num_addresses >= self.config.max_addresses:
            raise CapacityExceeded

        # STEP 2: the address must still be unregistered. Any other status
        # gives a different root when replayed with the sentinel value.
        try:
            null_root_after = witness.check_and_set(
                state.nullifier_root, Status.UNREGISTERED, Status.WHITELISTED
            )
        except RootMismatch as e:
            raise AlreadyWhitelisted from e

        # STEP 3: commit the new root and count
        self._state = state.replace(
            nullifier_root=null_root_after,
            num_addresses=state.num_addresses + 1,
        )
        logger.info(
            "whitelisted address %x (%d/%d)",
            witness.key,
            self._state.num_addresses,
            self.config.max_addresses,
        )

    @_transition
    def update_messages(
        self,
        null_witness: MerkleMapWitness,
        message_witness: MerkleMapWitness,
        message: int,
    ):
        state = self.state
        self._check_depth(null_witness, message_witness)

        # both witnesses must point at the same address
        if null_witness.key != message_witness.key:
            raise WitnessKeyMismatch

        # STEP 1: the address must be whitelisted and not have a message yet.
        # Unregistered and message-set addresses both fail this replay.
        try:
            null_root_after = null_witness.check_and_set(
                state.nullifier_root, Status.WHITELISTED, Status.MESSAGE_SET
            )
        except RootMismatch as e:
            raise NotEligibleToMessage from e

        # STEP 2: the message slot must be empty. Implied by step 1 as long as
        # both maps are only written here, checked anyway.
        if message_witness.compute_root(UNSET_MESSAGE) != state.message_root:
            raise MessageAlreadySet

        # STEP 3: check message flags
        if not validate_message(message):
            raise InvalidFlags

        # a stored message is never the unset sentinel
        if not is_field_element(message) or message == UNSET_MESSAGE:
            raise InvalidMessage

        # STEP 4: commit both roots and the count together
        message_root_after = message_witness.compute_root(message)
        self._state = state.replace(
            nullifier_root=null_root_after,
            message_root=message_root_after,
            num_messages=state.num_messages + 1,
        )
        logger.info(
            "stored message for address %x (%d messages)",
            null_witness.key,
            self._state.num_messages,
        )


class RegistryError(Exception):
    pass


class CapacityExceeded(RegistryError):
    def __str__(self):
        return "maximum number of addresses reached"


class AlreadyWhitelisted(RegistryError):
    def __str__(self):
        return "address already in whitelist"


class NotEligibleToMessage(RegistryError):
    def __str__(self):
        return "spy is not whitelist or message already set"


class MessageAlreadySet(RegistryError):
    def __str__(self):
        return "message already set"


class InvalidFlags(RegistryError):
    def __str__(self):
        return "invalid message flags"


class InvalidMessage(RegistryError):
    def __str__(self):
        return "message must be a non-zero field element"


class WitnessKeyMismatch(RegistryError):
    def __str__(self):
        return "nullifier and message witnesses disagree on key"


class NotAdmin(RegistryError):
    def __str__(self):
        return "only admin can add addresses to whitelist"


class AlreadyInitialized(RegistryError):
    def __str__(self):
        return "registry already initialized"


class NotInitialized(RegistryError):
    def __str__(self):
        return "registry not initialized"
