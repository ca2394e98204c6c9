from unittest import TestCase

from .client import RegistryClient
from .config import RegistryConfig
from .spymaster import InvalidFlags, NotEligibleToMessage, SpyMaster, Status
from .test_common import INVALID_FLAG_MESSAGE, VALID_FLAG_MESSAGE, mk_registry, mk_spies


class TestRegistryClient(TestCase):
    def test_mirror_follows_accepted_transitions(self):
        client = mk_registry()
        spy = mk_spies(1)[0]
        assert client.in_sync()
        self.assertEqual(client.status(spy), Status.UNREGISTERED)
        self.assertEqual(client.message(spy), 0)

        client.whitelist(spy)
        assert client.in_sync()
        self.assertEqual(client.status(spy), Status.WHITELISTED)

        client.submit(spy, VALID_FLAG_MESSAGE)
        assert client.in_sync()
        self.assertEqual(client.status(spy), Status.MESSAGE_SET)
        self.assertEqual(client.message(spy), VALID_FLAG_MESSAGE)

    def test_rejected_transitions_leave_the_mirror_unchanged(self):
        client = mk_registry()
        spy, other = mk_spies(2)
        client.whitelist(spy)
        nullifier_root = client.nullifier_map.get_root()
        message_root = client.message_map.get_root()

        with self.assertRaises(InvalidFlags):
            client.submit(spy, INVALID_FLAG_MESSAGE)
        with self.assertRaises(NotEligibleToMessage):
            client.submit(other, VALID_FLAG_MESSAGE)

        self.assertEqual(client.nullifier_map.get_root(), nullifier_root)
        self.assertEqual(client.message_map.get_root(), message_root)
        assert client.in_sync()

    def test_detects_divergence(self):
        client = mk_registry()
        spy = mk_spies(1)[0]
        client.nullifier_map.set(client.key(spy), Status.WHITELISTED)

        with self.assertLogs("spymaster.client", level="WARNING"):
            assert not client.in_sync()

    def test_keys_are_truncated_to_the_tree_depth(self):
        contract = SpyMaster(RegistryConfig.default().replace(tree_depth=16))
        client = RegistryClient(contract)
        client.initialize()
        spy = mk_spies(1)[0]

        assert client.key(spy) < 2**16
        client.whitelist(spy)
        client.submit(spy, VALID_FLAG_MESSAGE)

        assert client.in_sync()
        self.assertEqual(contract.num_messages, 1)
