from dataclasses import dataclass
from enum import Enum


class GuardAction(Enum):
    ALLOW = "allow"
    BLOCK = "block"


@dataclass
class GuardResult:
    action: GuardAction
    key: str = ""
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return self.action == GuardAction.ALLOW
