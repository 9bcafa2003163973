from enum import Enum, unique

from .errors import InvalidRoleError


@unique
class Role(Enum):
    PRIMARY = "primary"
    WORKER = "worker"


def assert_role(role: Role, expected: Role) -> None:
    if role != expected:
        raise InvalidRoleError(
            f"Invalid operation: role is {role.value} (must be {expected.value})"
        )
