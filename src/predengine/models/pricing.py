"""PricingConfig - fee rates and slippage limit for AMM trades."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PricingConfig(BaseModel):
    """Fee and slippage fractions. Immutable; override per call with model_copy(update=...)."""

    model_config = ConfigDict(frozen=True)

    base_fee: float = Field(0.001, ge=0, lt=1, description="0.1%")
    liquidity_fee: float = Field(0.002, ge=0, lt=1, description="0.2%")
    protocol_fee: float = Field(0.0005, ge=0, lt=1, description="0.05%")
    max_slippage: float = Field(0.05, ge=0, lt=1, description="5%")


DEFAULT_PRICING_CONFIG = PricingConfig()
