"""
Database Seed Script
Creates tier limits and a demo tenant for development and testing
"""

import sys

# Add parent directory to path
sys.path.insert(0, str(__file__).rsplit("/", 2)[0])

from sqlalchemy.orm import Session

from seo_metrics.models import Base, Tenant, TierLimit, SubscriptionTier
from seo_metrics.utils.database import get_sync_db

# Monthly credits per endpoint category
TIER_LIMITS = {
    SubscriptionTier.FREE: {
        "keyword_research_limit": 50,
        "website_audit_limit": 5,
        "backlink_analysis_limit": 20,
        "competitor_analysis_limit": 10,
        "rank_tracking_limit": 0,
        "total_credit_limit": 75,
    },
    SubscriptionTier.STARTER: {
        "keyword_research_limit": 500,
        "website_audit_limit": 50,
        "backlink_analysis_limit": 200,
        "competitor_analysis_limit": 100,
        "rank_tracking_limit": 100,
        "total_credit_limit": 800,
    },
    SubscriptionTier.PROFESSIONAL: {
        "keyword_research_limit": 5000,
        "website_audit_limit": 500,
        "backlink_analysis_limit": 2000,
        "competitor_analysis_limit": 1000,
        "rank_tracking_limit": 1000,
        "total_credit_limit": None,
    },
    SubscriptionTier.ENTERPRISE: {
        "keyword_research_limit": 50000,
        "website_audit_limit": 5000,
        "backlink_analysis_limit": 20000,
        "competitor_analysis_limit": 10000,
        "rank_tracking_limit": 10000,
        "total_credit_limit": None,
    },
}

DEMO_TENANT_ID = "demo-tenant"


def create_reference_data(db: Session):
    """Upsert every tier and the demo tenant"""
    print("Creating tier limits...")
    for tier, limits in TIER_LIMITS.items():
        db.merge(TierLimit(tier_name=tier.value, **limits))
        print(f"  {tier.value}: {limits}")

    if db.get(Tenant, DEMO_TENANT_ID) is None:
        db.add(Tenant(id=DEMO_TENANT_ID, subscription_tier=SubscriptionTier.PROFESSIONAL.value))
        print(f"  Created tenant: {DEMO_TENANT_ID}")

    db.commit()
    print("\nSeed data created successfully!")


def main():
    """Main entry point"""
    print("Connecting to database...")
    db = get_sync_db()

    try:
        print("Creating tables...")
        Base.metadata.create_all(db.get_bind())
        create_reference_data(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
