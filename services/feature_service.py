"""
Feature Service - feature flags with percentage rollout.

Created once at application startup and handed to consumers through the
`get_feature_service` dependency.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Sequence

from fastapi import Request

logger = logging.getLogger(__name__)


@dataclass
class Feature:
    id: str
    name: str
    description: str
    enabled: bool
    rollout_percentage: int = 100


DEFAULT_FEATURES = [
    Feature("advanced_analytics", "Advanced Analytics", "Detailed business analytics and insights", True, 100),
    Feature("bulk_operations", "Bulk Operations", "Perform bulk operations on customers and orders", True, 50),
    Feature("ai_recommendations", "AI Recommendations", "AI-powered recommendations for customers and styles", False, 10),
    Feature("mobile_app", "Mobile App", "Native mobile app for iOS and Android", False, 0),
    Feature("advanced_reporting", "Advanced Reporting", "Custom reports and data export", True, 75),
    Feature("integrations", "Third-party Integrations", "Integrate with external services", True, 25),
    Feature("multi_shop", "Multi-Shop Management", "Manage multiple shops from one account", False, 5),
    Feature("loyalty_program", "Customer Loyalty Program", "Reward system for repeat customers", True, 30),
    Feature("inventory_management", "Inventory Management", "Track and manage fabric and materials", True, 60),
    Feature("sms_notifications", "SMS Notifications", "Send SMS notifications to customers", True, 40),
]


def rollout_bucket(subject_id: str) -> float:
    """Stable value in [0, 1] for a subject, from a 32-bit rolling string hash."""
    h = 0
    for char in subject_id:
        h = ((h << 5) - h + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h) / 2147483647


class FeatureService:

    def __init__(self, features: Optional[Sequence[Feature]] = None):
        source = DEFAULT_FEATURES if features is None else features
        self.features: Dict[str, Feature] = {f.id: Feature(**asdict(f)) for f in source}

    def is_enabled(self, feature_id: str, subject_id: Optional[str]) -> bool:
        feature = self.features.get(feature_id)
        if feature is None or not feature.enabled or not subject_id:
            return False
        if feature.rollout_percentage >= 100:
            return True
        if feature.rollout_percentage <= 0:
            return False
        return rollout_bucket(subject_id) < feature.rollout_percentage / 100

    def all_features(self) -> List[Feature]:
        return list(self.features.values())

    def enabled_features(self, subject_id: str) -> List[Feature]:
        return [f for f in self.features.values() if self.is_enabled(f.id, subject_id)]

    def toggle_feature(self, feature_id: str, enabled: bool) -> Optional[Feature]:
        feature = self.features.get(feature_id)
        if feature is None:
            return None
        feature.enabled = enabled
        logger.info(f"Feature {feature_id} {'enabled' if enabled else 'disabled'}")
        return feature

    def update_rollout(self, feature_id: str, percentage: int) -> Optional[Feature]:
        feature = self.features.get(feature_id)
        if feature is None:
            return None
        feature.rollout_percentage = max(0, min(100, percentage))
        logger.info(f"Feature {feature_id} rollout set to {feature.rollout_percentage}%")
        return feature

    def run_experiment(self, experiment_id: str, subject_id: Optional[str], variants: Sequence[str]) -> str:
        if not subject_id:
            return variants[0]
        index = int(rollout_bucket(f"{experiment_id}_{subject_id}") * len(variants))
        return variants[min(index, len(variants) - 1)]


def get_feature_service(request: Request) -> FeatureService:
    return request.app.state.feature_service
