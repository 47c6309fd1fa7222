"""Cross-chain status indexer adapters."""

from usdc_hub.indexer.scripted import ScriptedIndexer
from usdc_hub.indexer.zeta_indexer import ZetaChainIndexer, parse_cctx_response

__all__ = ["ScriptedIndexer", "ZetaChainIndexer", "parse_cctx_response"]
