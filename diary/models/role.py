import enum


class Role(str, enum.Enum):
    """The two fixed participants of the diary."""
    master = "master"
    partner = "partner"

    @property
    def other(self) -> "Role":
        return _OTHER[self]


_OTHER = {
    Role.master: Role.partner,
    Role.partner: Role.master,
}

ROLES: tuple[Role, ...] = (Role.master, Role.partner)
