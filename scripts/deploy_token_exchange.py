#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from deployment.deployer import Deployer
from deployment.factories import ApeContractFactory
from deployment.options import (
    account_aliases_option,
    autosign_option,
    plan_option,
    publish_option,
    publish_registry_option,
    upgradeable_option,
)
from deployment.params import DeploymentPlan
from deployment.utils import (
    _load_yaml,
    get_funding_accounts,
    resolve_upgradeable_flag,
    validate_config,
)


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@plan_option
@upgradeable_option
@account_aliases_option
@autosign_option
@publish_option
@publish_registry_option
def cli(network, plan, upgradeable, account_aliases, autosign, publish, publish_registry):
    """
    Deploys the GM, XCN and MDT tokens and their exchanges, then grants the
    XCN exchange the GM minter role.

    ape run deploy_token_exchange --network ethereum:local:test --autosign
    DEPLOY_GM_WITH_PROXY=true ape run deploy_token_exchange --network ethereum:local:test
    ape run deploy_token_exchange --network ethereum:sepolia:infura -a deployer --publish
    """
    config = _load_yaml(plan)
    registry_filepath = validate_config(config)

    funding_accounts = get_funding_accounts(account_aliases)
    upgradeable = resolve_upgradeable_flag(override=upgradeable)
    deployment_plan = DeploymentPlan.from_config(
        config, accounts=funding_accounts, upgradeable=upgradeable
    )

    click.secho(
        f"Network: {networks.provider.network.name} "
        f"(chain ID {networks.provider.network.chain_id})",
        fg="green",
    )
    deployer = Deployer(
        plan=deployment_plan,
        factory=ApeContractFactory(publish=publish),
        path=plan,
        autosign=autosign,
    )
    deployments = deployer.run()

    for name, address in deployments.addresses().items():
        click.secho(f"{name}: {address}", fg="cyan")

    if publish_registry:
        deployer.finalize(
            deployments=deployments,
            registry_filepath=registry_filepath,
            chain_id=networks.provider.network.chain_id,
        )


if __name__ == "__main__":
    cli()
