import logging
import random

import pandas

from spymaster.client import RegistryClient
from spymaster.crypto import Identity
from spymaster.flags import validate_message
from spymaster.sim.config import Config
from spymaster.spymaster import RegistryError, SpyMaster

logger = logging.getLogger(__name__)

ACCEPTED = "accepted"


class Simulation:
    """
    Deploys a registry, whitelists spies and lets them submit messages,
    then summarizes what was accepted and what was rejected.
    """

    def __init__(self, config: Config):
        self.config = config
        self.admin: Identity | None = None
        self.outcomes: list[dict] = []

    def run(self) -> pandas.DataFrame:
        client, spies = self.__deploy()
        self.__whitelist(client, spies)
        self.__submit(client, spies)

        assert client.in_sync()

        df = pandas.DataFrame(
            self.outcomes, columns=["operation", "spy", "message", "result"]
        )
        self.__analyze(df, client.contract)
        return df

    def __deploy(self) -> tuple[RegistryClient, list[Identity]]:
        rng = self.config.simulation.seed
        admin = Identity.from_seed(rng.randbytes(32))
        spies = [
            Identity.from_seed(rng.randbytes(32))
            for _ in range(self.config.simulation.num_spies)
        ]
        contract = SpyMaster(self.config.registry, admin=admin.public_key_bytes)
        client = RegistryClient(contract)
        client.initialize()
        self.admin = admin
        logger.info("deployed registry for %d spies", len(spies))
        return client, spies

    def __whitelist(self, client: RegistryClient, spies: list[Identity]):
        for i, spy in enumerate(spies):
            self.__record(
                "whitelist", i, None, lambda: client.whitelist(spy, self.admin)
            )

    def __submit(self, client: RegistryClient, spies: list[Identity]):
        rng = self.config.simulation.seed
        for _ in range(self.config.simulation.num_messages):
            i = rng.randrange(len(spies))
            valid = rng.random() >= self.config.simulation.invalid_flag_ratio
            message = random_message(rng, valid)
            self.__record(
                "message", i, message, lambda: client.submit(spies[i], message)
            )

    def __record(self, operation: str, spy: int, message: int | None, call):
        try:
            call()
            result = ACCEPTED
        except RegistryError as e:
            result = type(e).__name__
        self.outcomes.append(
            {"operation": operation, "spy": spy, "message": message, "result": result}
        )

    def __analyze(self, df: pandas.DataFrame, contract: SpyMaster):
        summary = df.groupby(["operation", "result"]).size().reset_index(name="count")
        print("==========================================")
        print(" Transition Outcomes")
        print("==========================================")
        print(f"{summary}\n")

        state = contract.state
        print("==========================================")
        print(" Registry State")
        print("==========================================")
        print(f"nullifierRoot: {state.nullifier_root:#x}")
        print(f"messageRoot:   {state.message_root:#x}")
        print(f"numAddresses:  {state.num_addresses}")
        print(f"numMessages:   {state.num_messages}\n")


def random_message(rng: random.Random, valid: bool, bits: int = 11) -> int:
    """
    Draw a non-zero message whose flags pass or fail validation as requested.
    """
    while True:
        message = rng.getrandbits(bits)
        if message != 0 and validate_message(message) == valid:
            return message
