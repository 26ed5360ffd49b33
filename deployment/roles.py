import typing
from collections import OrderedDict
from typing import Any, Sequence

from ape.api import AccountAPI

from deployment.constants import DEFAULT_ROLE_INDICES


class RoleMap:
    """
    Binds logical role names (gmAdmin, user, ...) to funding accounts.
    Derived once per run and shared by the deployer and the interaction harness.
    """

    class Invalid(ValueError):
        """Raised when roles cannot be bound to the available accounts"""

    def __init__(self, roles: typing.OrderedDict[str, AccountAPI]):
        self._roles = roles

    @classmethod
    def from_accounts(
        cls,
        accounts: Sequence[AccountAPI],
        indices: typing.Optional[typing.Mapping[str, int]] = None,
    ) -> "RoleMap":
        indices = indices if indices is not None else DEFAULT_ROLE_INDICES
        for role, index in indices.items():
            if not isinstance(index, int) or isinstance(index, bool) or index < 0:
                raise cls.Invalid(
                    f"Account index for role '{role}' must be a non-negative integer."
                )

        # report the role needing the most accounts
        highest_role = max(indices, key=indices.get, default=None)
        if highest_role is not None and indices[highest_role] >= len(accounts):
            raise cls.Invalid(
                f"Role '{highest_role}' needs account #{indices[highest_role]} but only "
                f"{len(accounts)} accounts are available."
            )

        roles = OrderedDict((role, accounts[index]) for role, index in indices.items())
        return cls(roles)

    def __contains__(self, role: Any) -> bool:
        return role in self._roles

    def __getitem__(self, role: str) -> AccountAPI:
        try:
            return self._roles[role]
        except KeyError:
            raise self.Invalid(f"Unknown role '{role}'.")

    def __iter__(self):
        return iter(self._roles)

    def __len__(self) -> int:
        return len(self._roles)

    def __getattr__(self, role: str) -> AccountAPI:
        # roles.gmAdmin
        if role.startswith("_"):
            raise AttributeError(role)
        try:
            return self._roles[role]
        except KeyError:
            raise AttributeError(f"No role named '{role}'")

    def items(self):
        return self._roles.items()

    def addresses(self) -> typing.Dict[str, str]:
        return {role: account.address for role, account in self._roles.items()}
