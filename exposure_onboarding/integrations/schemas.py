"""
Wire records exchanged with the platform API.

The API speaks camelCase; fields are declared snake_case with aliases.
Unknown fields are ignored so the profile endpoint can grow.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LinkedWalletRecord(WireModel):
    id: Optional[str] = None
    address: str
    chain: str
    is_primary: bool = Field(False, alias="isPrimary")
    linked_at: Optional[datetime] = Field(None, alias="linkedAt")


class UserRecord(WireModel):
    """User returned by POST /auth/verify."""
    id: str
    wallet_address: str = Field(alias="walletAddress")
    role: Optional[str] = None
    kyc_status: Optional[str] = Field(None, alias="kycStatus")
    tier_level: Optional[str] = Field(None, alias="tierLevel")
    display_name: Optional[str] = Field(None, alias="displayName")
    email: Optional[str] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")


class ProfileRecord(WireModel):
    """Persisted profile returned by GET /users/me."""
    id: Optional[str] = None
    wallet_address: Optional[str] = Field(None, alias="walletAddress")
    display_name: Optional[str] = Field(None, alias="displayName")
    kyc_status: Optional[str] = Field(None, alias="kycStatus")
    country: Optional[str] = None
    investor_classification: Optional[str] = Field(None, alias="investorClassification")
    is_accredited_us: bool = Field(False, alias="isAccreditedUS")
    accreditation_method: Optional[str] = Field(None, alias="accreditationMethod")
    attestation_hash: Optional[str] = Field(None, alias="attestationHash")
    attestation_type: Optional[str] = Field(None, alias="attestationType")
    attestation_issued_at: Optional[datetime] = Field(None, alias="attestationIssuedAt")
    attestation_expires_at: Optional[datetime] = Field(None, alias="attestationExpiresAt")
    wallets: List[LinkedWalletRecord] = Field(default_factory=list)


class WalletsRecord(WireModel):
    """Response of GET /users/me/wallets."""
    primary_wallet: Optional[str] = Field(None, alias="primaryWallet")
    wallets: List[LinkedWalletRecord] = Field(default_factory=list)
    total_wallets: int = Field(0, alias="totalWallets")
