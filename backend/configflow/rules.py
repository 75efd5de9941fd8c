from typing import Iterator, List, Optional

from .models import Rule, RuleTable


class RuleBook:
    """Read-only view over a rule table.

    Lookups scan every module's rules; scoping to a module happens when the
    engine resolves rule keys against an option's sibling scope.
    """

    def __init__(self, table: Optional[RuleTable]):
        self.table = table

    def __bool__(self) -> bool:
        return self.table is not None

    def all_rules(self) -> Iterator[Rule]:
        if self.table is None:
            return
        for module in self.table.modules:
            yield from module.rules

    def rules_for(self, key: str) -> List[Rule]:
        return [rule for rule in self.all_rules() if rule.subject_key == key]

    def rules_requiring(self, key: str) -> List[Rule]:
        return [rule for rule in self.all_rules() if key in rule.requires]

