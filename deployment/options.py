from pathlib import Path

import click

from deployment.constants import TOKEN_EXCHANGE_PLAN_FILEPATH, UPGRADEABLE_VARIANT_ENVVAR
from deployment.types import ChecksumAddress

plan_option = click.option(
    "--plan",
    "-p",
    help="Deployment plan YAML file.",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=TOKEN_EXCHANGE_PLAN_FILEPATH,
    show_default=True,
)

upgradeable_option = click.option(
    "--proxy-gm/--no-proxy-gm",
    "upgradeable",
    help="Deploy the upgradeable GM token behind a proxy. "
    f"Defaults to ${UPGRADEABLE_VARIANT_ENVVAR}.",
    default=None,
)

account_aliases_option = click.option(
    "--account-alias",
    "-a",
    "account_aliases",
    help="Funding account aliases, in role index order. Test accounts are used on local networks.",
    multiple=True,
)

autosign_option = click.option(
    "--autosign",
    help="Sign and send every transaction without confirmation.",
    is_flag=True,
    default=False,
)

publish_registry_option = click.option(
    "--publish-registry",
    help="Write the deployed addresses to the plan's registry file.",
    is_flag=True,
    default=False,
)

registry_option = click.option(
    "--registry",
    "-r",
    help="Registry file of a previous deployment.",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
)

contract_option = click.option(
    "--contract",
    "-c",
    help="Logical name of the token to grant on.",
    default="GM",
    show_default=True,
)

grantee_option = click.option(
    "--grantee",
    "-g",
    help="Address receiving the privilege.",
    type=ChecksumAddress(),
    required=True,
)

publish_option = click.option(
    "--publish",
    help="Publish deployed contract sources to the network's explorer.",
    is_flag=True,
    default=False,
)
