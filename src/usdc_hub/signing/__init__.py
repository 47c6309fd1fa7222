"""Signer collaborators: a node-backed web3 signer and an in-memory simulator."""

from usdc_hub.signing.simulated import SimulatedSigner
from usdc_hub.signing.web3_signer import Web3Reader, Web3Signer

__all__ = ["SimulatedSigner", "Web3Reader", "Web3Signer"]
