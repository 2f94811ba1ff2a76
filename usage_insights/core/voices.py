"""
Voice catalog and per-character pricing.

Maps text-to-speech voice names to their tier, rate, free quota and gender.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional


class VoiceTier(Enum):
    """Voice quality classes, each billed at its own rate."""
    STANDARD = "Standard"
    NEURAL2 = "Neural2"
    WAVENET = "Wavenet"


@dataclass(frozen=True)
class TierPricing:
    """Per-character pricing and monthly free allowance for a tier."""
    cost_per_char: Decimal
    monthly_quota: int  # Free characters per month


@dataclass(frozen=True)
class VoiceProfile:
    """Known voice with its listener-facing name."""
    name: str
    display_name: str
    gender: str


@dataclass(frozen=True)
class VoiceCatalog:
    """Fixed lookup of tier pricing and known voices."""
    tiers: Dict[VoiceTier, TierPricing]
    voices: Dict[str, VoiceProfile]

    def classify(self, voice_name: str) -> VoiceTier:
        """Classify a voice by substring; anything unrecognized is Standard."""
        if VoiceTier.NEURAL2.value in voice_name:
            return VoiceTier.NEURAL2
        if VoiceTier.WAVENET.value in voice_name:
            return VoiceTier.WAVENET
        return VoiceTier.STANDARD

    def get_pricing(self, tier: VoiceTier) -> TierPricing:
        return self.tiers[tier]

    def cost_for(self, voice_name: str, characters: int) -> float:
        """Cost of synthesizing ``characters`` with the given voice.

        Args:
            voice_name: Voice identifier, known or not
            characters: Characters synthesized (already multiplied by play count)

        Returns:
            Unrounded cost in currency units
        """
        pricing = self.get_pricing(self.classify(voice_name))
        return float(Decimal(characters) * pricing.cost_per_char)

    def overage_cost(self, tier: VoiceTier, characters_used: int) -> float:
        """Cost of the characters used beyond the tier's monthly free quota."""
        pricing = self.get_pricing(tier)
        billable = max(0, characters_used - pricing.monthly_quota)
        return float(Decimal(billable) * pricing.cost_per_char)

    def gender(self, voice_name: str) -> Optional[str]:
        """Spoken gender of a known voice, None when unknown."""
        profile = self.voices.get(voice_name)
        return profile.gender if profile else None

    def display_name(self, voice_name: str) -> str:
        profile = self.voices.get(voice_name)
        return profile.display_name if profile else "Unknown"


def _voice(name: str, display_name: str, gender: str) -> VoiceProfile:
    return VoiceProfile(name=name, display_name=display_name, gender=gender)


# Google Cloud TTS pricing, fixed
VOICE_CATALOG = VoiceCatalog(
    tiers={
        VoiceTier.STANDARD: TierPricing(
            cost_per_char=Decimal("0.000004"),  # $4 per 1M characters
            monthly_quota=1_000_000
        ),
        VoiceTier.NEURAL2: TierPricing(
            cost_per_char=Decimal("0.000016"),  # $16 per 1M characters
            monthly_quota=300_000
        ),
        VoiceTier.WAVENET: TierPricing(
            cost_per_char=Decimal("0.000016"),
            monthly_quota=300_000
        ),
    },
    voices={
        v.name: v for v in (
            _voice("ja-JP-Standard-A", "Sakura (桜)", "female"),
            _voice("ja-JP-Standard-B", "Yumi (弓子)", "female"),
            _voice("ja-JP-Standard-C", "Nakayama (中山)", "male"),
            _voice("ja-JP-Standard-D", "Kenji (健二)", "male"),
            _voice("ja-JP-Neural2-B", "Hina (陽菜)", "female"),
            _voice("ja-JP-Neural2-C", "Takuya (拓也)", "male"),
            _voice("ja-JP-Neural2-D", "Mei (芽衣)", "female"),
            _voice("ja-JP-Wavenet-A", "Kaori (香織)", "female"),
            _voice("ja-JP-Wavenet-B", "Rin (凛)", "female"),
            _voice("ja-JP-Wavenet-C", "Daiki (大輝)", "male"),
            _voice("ja-JP-Wavenet-D", "Sora (空)", "male"),
        )
    },
)
