import argparse
import logging

from spymaster.sim.config import Config
from spymaster.sim.simulation import Simulation

if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Run registry simulation",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--config", type=str, required=True, help="Configuration file path"
    )
    args = parser.parse_args()

    config = Config.load(args.config)
    logging.basicConfig(
        level=config.simulation.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sim = Simulation(config)
    sim.run()

    print("Simulation complete!")
