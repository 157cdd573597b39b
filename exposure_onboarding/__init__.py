"""
Exposure Investor Onboarding

Engine behind the five-step investor onboarding wizard:
    Sign-In → Assessment → KYC → Wallet Linking → Attestation

Rendering lives elsewhere. This package owns the step state machine,
eligibility classification, jurisdiction gating and the protocol flows
that talk to the platform API and the investor's wallet.
"""

__version__ = "0.1.0"
