#!/usr/bin/python3

from chaindeploy.config import Settings
from chaindeploy.deployer import Deployer
from chaindeploy.registry import ContractRegistration, ContractRegistry

VERIFY = True
ADMIN = "0xA62c64Ec38d4b280192acE99ddFee60768C51562"

REGISTRY = ContractRegistry(
    [
        ContractRegistration(
            name="MedianAggregator",
            source="src/aggregator/MedianAggregator.sol",
        ),
        ContractRegistration(
            name="EvenFeeHandler",
            source="src/feeHandler/EvenFeeHandler.sol",
        ),
        ContractRegistration(
            name="AlloraAdapter",
            source="src/AlloraAdapter.sol",
        ),
    ]
)


def main():
    settings = Settings.from_env()
    deployer = Deployer.from_settings(REGISTRY, settings, verify=VERIFY, autosign=True)

    median_aggregator = deployer.deploy("MedianAggregator")

    fee_handler = deployer.deploy("EvenFeeHandler", [{"admin": ADMIN}])

    allora_adapter = deployer.deploy(
        "AlloraAdapter",
        [{"admin": ADMIN, "aggregator": median_aggregator.address, "feeHandler": fee_handler.address}],
    )

    deployer.call(
        "turn on AlloraAdapter",
        lambda: deployer.transact(allora_adapter.functions.turnOn),
        lambda: allora_adapter.functions.switchedOn().call(),
    )


if __name__ == "__main__":
    main()
