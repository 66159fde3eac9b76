from tessera.chain.chain import (
    MAX_CHAIN_LENGTH,
    Chain,
    ChainDefinitionError,
    Chained,
    Link,
    link,
)

__all__ = [
    "MAX_CHAIN_LENGTH",
    "Chain",
    "ChainDefinitionError",
    "Chained",
    "Link",
    "link",
]
