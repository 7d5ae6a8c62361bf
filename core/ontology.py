"""
PAYFLOW ONTOLOGY - The Dictionary of the Editor

If schemas.py is the Grammar (how we structure a graph),
ontology.py is the Dictionary (the words we can use).

This module defines:
- Enums: The vocabulary (NodeKind, PayloadVariant)
- The provider catalog offered by the provider picker
- The connection matrix: which node kinds may be wired together
- The amount-feedback styles applied to the initializer node

Key Principle: Connection legality depends ONLY on endpoint kinds.
Cycles and parallel edges are not part of the vocabulary, so the
dictionary says nothing about them.
"""
from typing import Dict, FrozenSet, List, Tuple
from enum import Enum


# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================

class NodeKind(str, Enum):
    """Kinds of nodes in a payment flow."""
    INITIALIZER = "INITIALIZER"      # Entry point where the amount is supplied
    PROVIDER = "PROVIDER"            # One payment provider (Stripe, PayPal, ...)
    DERIVED = "DERIVED"              # Node derived from the flow (e.g. the amount summary)


class PayloadVariant(str, Enum):
    """Tag values of the payload union."""
    PLAIN = "plain"                  # JSON-compatible value, persisted as-is
    RICH = "rich"                    # Opaque content, persisted as a sentinel


# =============================================================================
# PROVIDER CATALOG
# =============================================================================

# The "nothing chosen" entry of the provider picker
PROVIDER_PLACEHOLDER = "Select Payment Method"

PAYMENT_PROVIDERS: List[str] = [
    "Google Pay",
    "Apple Pay",
    "Stripe",
    "PayPal",
    "Amazon Pay",
]


def is_provider_choice(value: str) -> bool:
    """True if a picker value names a provider rather than the placeholder."""
    return bool(value) and value != PROVIDER_PLACEHOLDER


# =============================================================================
# CONNECTION MATRIX (The Physics of Edges)
# =============================================================================

LEGAL_CONNECTIONS: FrozenSet[Tuple[NodeKind, NodeKind]] = frozenset({
    (NodeKind.INITIALIZER, NodeKind.PROVIDER),
    (NodeKind.PROVIDER, NodeKind.PROVIDER),
})


def is_legal_kind_pair(source: str, target: str) -> bool:
    """Check a (source kind, target kind) pair against the connection matrix."""
    try:
        return (NodeKind(source), NodeKind(target)) in LEGAL_CONNECTIONS
    except ValueError:
        return False


# =============================================================================
# AMOUNT FEEDBACK STYLES
# =============================================================================

VALID_AMOUNT_STYLE: Dict[str, str] = {
    "backgroundColor": "lightgreen",
    "color": "black",
}

INVALID_AMOUNT_STYLE: Dict[str, str] = {
    "backgroundColor": "red",
    "color": "black",
}

DEFAULT_MAX_AMOUNT = 10.0


# =============================================================================
# WELL-KNOWN IDS
# =============================================================================

INITIALIZER_ID = "payment-initialize"

# Capability tags of the rich payloads the editor creates
AMOUNT_FORM_TAG = "amount-form"      # Initializer: label plus amount input
PROVIDER_CARD_TAG = "provider-card"  # Provider: icon, name and delete button
