import os
import random
from unittest import TestCase

from spymaster.flags import validate_message
from spymaster.sim.config import Config
from spymaster.sim.simulation import ACCEPTED, Simulation, random_message


def mk_sim_config(**simulation) -> Config:
    data = {
        "registry": {"max_addresses": 3, "tree_depth": 256},
        "simulation": {
            "num_spies": 5,
            "num_messages": 10,
            "invalid_flag_ratio": 0.3,
            "seed": 1,
        },
    }
    data["simulation"].update(simulation)
    return Config.from_dict(data)


class TestConfig(TestCase):
    def test_load_shipped_config(self):
        config = Config.load(os.path.join(os.path.dirname(__file__), "config.yaml"))

        assert config.registry.max_addresses == 100
        assert config.registry.tree_depth == 256
        assert isinstance(config.simulation.seed, random.Random)
        assert config.simulation.log_level == "INFO"

    def test_invalid_config(self):
        with self.assertRaises(AssertionError):
            mk_sim_config(invalid_flag_ratio=1.5)
        with self.assertRaises(AssertionError):
            mk_sim_config(num_spies=0)


class TestSimulation(TestCase):
    def test_run(self):
        df = Simulation(mk_sim_config()).run()

        whitelist = df[df.operation == "whitelist"]
        messages = df[df.operation == "message"]
        assert len(whitelist) == 5
        assert len(messages) == 10

        # two spies do not fit in a registry of three
        assert (whitelist.result == ACCEPTED).sum() == 3
        assert (whitelist.result == "CapacityExceeded").sum() == 2

        # every spy stores at most one message, and only when whitelisted
        accepted = messages[messages.result == ACCEPTED]
        assert accepted.spy.is_unique
        whitelisted = set(whitelist[whitelist.result == ACCEPTED].spy)
        assert set(accepted.spy) <= whitelisted
        assert all(validate_message(int(m)) for m in accepted.message)

    def test_run_is_deterministic(self):
        df1 = Simulation(mk_sim_config(seed=7)).run()
        df2 = Simulation(mk_sim_config(seed=7)).run()

        assert df1.equals(df2)

    def test_random_message(self):
        rng = random.Random(0)
        for _ in range(50):
            assert validate_message(random_message(rng, True))
            assert random_message(rng, True) != 0
            assert not validate_message(random_message(rng, False))
