from __future__ import annotations

import random
from dataclasses import dataclass

import dacite
import yaml

from spymaster.config import RegistryConfig


@dataclass
class Config:
    registry: RegistryConfig
    simulation: SimulationConfig

    @classmethod
    def load(cls, yaml_path: str) -> Config:
        with open(yaml_path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        config = dacite.from_dict(
            data_class=Config,
            data=data,
            config=dacite.Config(type_hooks={random.Random: seed_to_random}),
        )

        # Validations
        config.registry.validate()
        config.simulation.validate()

        return config


@dataclass
class SimulationConfig:
    # Number of spies the admin tries to whitelist.
    # Attempts past the registry capacity are expected to be rejected.
    num_spies: int
    # Number of message submissions, each from a randomly chosen spy.
    # Spies may be chosen more than once, repeated submissions are expected to be rejected.
    num_messages: int
    # Fraction of submissions that carry a message with invalid flags.
    invalid_flag_ratio: float
    # Seed for the random number generator choosing spies and messages.
    seed: random.Random
    log_level: str = "INFO"

    def validate(self):
        assert self.num_spies > 0
        assert self.num_messages >= 0
        assert 0 <= self.invalid_flag_ratio <= 1
        assert self.seed is not None
        assert self.log_level in ("DEBUG", "INFO", "WARNING", "ERROR")


def seed_to_random(seed: int) -> random.Random:
    return random.Random(seed)
