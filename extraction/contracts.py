"""
Lookup helpers over the venue's contract directory.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional

from orders.schemas import Contract


class UnresolvedContractError(LookupError):
    """Raised when a contract reference matches nothing in the directory."""

    def __init__(self, reference: object) -> None:
        super().__init__(f"Could not find a matching contract for: {reference}")
        self.reference = reference


class ContractDirectory:
    """Immutable view of the tradable contracts keyed by id."""

    def __init__(self, contracts: Iterable[Contract]) -> None:
        self._contracts: Dict[int, Contract] = {}
        for contract in contracts:
            self._contracts[contract.contract_id] = contract

    def __iter__(self) -> Iterator[Contract]:
        return iter(self._contracts.values())

    def __len__(self) -> int:
        return len(self._contracts)

    def get(self, contract_id: int) -> Optional[Contract]:
        return self._contracts.get(contract_id)

    def resolve(self, reference: object) -> Contract:
        """
        Match by exact numeric id, otherwise by case-insensitive symbol or
        index name.
        """
        contract = self.find(reference)
        if contract is None:
            raise UnresolvedContractError(reference)
        return contract

    def find(self, reference: object) -> Optional[Contract]:
        if reference is None or isinstance(reference, bool):
            return None
        if isinstance(reference, int):
            return self._contracts.get(reference)
        text = str(reference).strip()
        if not text:
            return None
        if text.isdigit():
            return self._contracts.get(int(text))
        needle = text.lower()
        for contract in self._contracts.values():
            if contract.symbol.lower() == needle or (contract.index and contract.index.lower() == needle):
                return contract
        return None

    def resolve_fuzzy(self, hint: Optional[str]) -> Optional[Contract]:
        """Exact match first, then substring containment in either direction."""
        exact = self.find(hint)
        if exact is not None or not hint:
            return exact
        needle = hint.strip().lower()
        if not needle:
            return None
        candidates: List[Contract] = []
        for contract in self._contracts.values():
            symbol = contract.symbol.lower()
            if symbol and (needle in symbol or symbol in needle):
                candidates.append(contract)
        if not candidates:
            return None
        # Prefer the closest symbol length, then the most traded contract.
        candidates.sort(key=lambda c: (abs(len(c.symbol) - len(needle)), -c.volume_24h))
        return candidates[0]

    def describe(self) -> str:
        """Contract listing used in oracle prompts."""
        return "\n".join(
            f"{contract.contract_id}: {contract.symbol} (Index: {contract.index})"
            for contract in self._contracts.values()
        )
