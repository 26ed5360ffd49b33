#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from deployment.interaction import check_balance, suite_tokens
from deployment.options import account_aliases_option, plan_option, registry_option
from deployment.params import DeploymentPlan
from deployment.registry import contracts_from_registry
from deployment.utils import get_funding_accounts, resolve_upgradeable_flag


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@plan_option
@registry_option
@account_aliases_option
def cli(network, plan, registry, account_aliases):
    """Prints the token balances of every role of a deployed suite."""
    deployment_plan = DeploymentPlan.from_yaml(
        plan,
        accounts=get_funding_accounts(account_aliases),
        upgradeable=resolve_upgradeable_flag(),
    )
    contracts = contracts_from_registry(
        filepath=registry, chain_id=networks.active_provider.chain_id
    )
    tokens = suite_tokens(deployment_plan, contracts)
    for role, account in deployment_plan.roles.items():
        click.secho(role, fg="yellow")
        check_balance(account.address, tokens)


if __name__ == "__main__":
    cli()
