#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, account_option, network_option

from deployment.deployer import Transactor
from deployment.options import contract_option, grantee_option, registry_option
from deployment.registry import contracts_from_registry


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@registry_option
@contract_option
@grantee_option
def cli(network, account, registry, contract, grantee):
    """Grants the minter role on a deployed token to an address."""
    transactor = Transactor(account)
    deployments = contracts_from_registry(
        filepath=registry, chain_id=networks.active_provider.chain_id
    )
    try:
        token = deployments[contract]
    except KeyError:
        raise click.BadParameter(f"{contract} is not in {registry}", param_hint="--contract")
    transactor.transact(token.grantMinterRole, grantee)


if __name__ == "__main__":
    cli()
