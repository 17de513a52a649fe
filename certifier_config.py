"""
Measurement configuration.

Every timing constant of a certification run lives here so a session can be
built at full scale (10 s track, 400 taps) or shrunk down for tests.
Values can be overridden through CERTIFIER_* environment variables.
"""

import os

from pydantic import BaseModel, field_validator

ENV_PREFIX = "CERTIFIER_"


class CertifierConfig(BaseModel):
    track_length_ms: float = 10000
    pulse_frequency_hz: float = 4.0
    minimum_samples: int = 400
    early_check_ms: float = 500
    final_grace_ms: float = 1000
    cooldown_ms: float = 500
    side_bins: int = 100

    @field_validator("track_length_ms", "pulse_frequency_hz", "early_check_ms", "final_grace_ms", "cooldown_ms")
    @classmethod
    def must_be_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @field_validator("minimum_samples", "side_bins")
    @classmethod
    def must_be_at_least_one(cls, v, info):
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @property
    def final_check_ms(self):
        """Delay from run start to the final sample-count check."""
        return self.track_length_ms + self.final_grace_ms

    def to_dict(self):
        d = self.model_dump()
        d["final_check_ms"] = self.final_check_ms
        return d


def load_config(env=None) -> CertifierConfig:
    """Build a config from CERTIFIER_* variables, falling back to defaults."""
    if env is None:
        env = os.environ
    overrides = {}
    for name in CertifierConfig.model_fields:
        value = env.get(ENV_PREFIX + name.upper())
        if value is not None and value.strip():
            overrides[name] = value.strip()
    return CertifierConfig(**overrides)
