"""Player alias resolution."""
from types import MappingProxyType
from typing import Dict, Mapping


class PlayerAliasResolver:
    """Maps raw player spellings to one canonical identity."""

    def __init__(self, aliases: Mapping[str, str]):
        """
        Initialize the resolver.

        Alias chains are collapsed to their terminal name so that resolving
        an already canonical name is a no-op.

        Args:
            aliases: Mapping of raw spelling to canonical name

        Raises:
            ValueError: If the aliases form a cycle
        """
        self._aliases = MappingProxyType(self._collapse(aliases))

    @staticmethod
    def _collapse(aliases: Mapping[str, str]) -> Dict[str, str]:
        collapsed = {}
        for alias in aliases:
            seen = [alias]
            target = aliases[alias]
            while target in aliases:
                if target in seen:
                    raise ValueError(
                        f"Alias cycle detected: {' -> '.join(seen + [target])}"
                    )
                seen.append(target)
                target = aliases[target]
            if target != alias:
                collapsed[alias] = target
        return collapsed

    def resolve(self, raw: str) -> str:
        """
        Resolve a raw player name.

        Args:
            raw: Player name as written in the thread

        Returns:
            Canonical name, or the input itself when no alias is known
        """
        return self._aliases.get(raw, raw)

    def __len__(self) -> int:
        return len(self._aliases)
