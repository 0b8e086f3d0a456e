"""
Customer test factory.

Generates realistic customer and metrics data for testing.
"""

import factory
from faker import Faker

fake = Faker()


class CustomerFactory(factory.Factory):
    """
    Factory for generating Customer test data.

    Usage:
        customer = Customer(**CustomerFactory())
        customer = CustomerFactory(nps_score=3)
    """

    class Meta:
        model = dict

    name = factory.LazyFunction(fake.company)
    industry = factory.LazyFunction(
        lambda: fake.random_element(["Retail", "Restaurant", "Grocery", "Pharmacy"])
    )
    website = factory.LazyFunction(fake.url)
    status = "active"
    arr = factory.LazyFunction(lambda: float(fake.random_int(5000, 250000)))
    mrr = factory.LazyAttribute(lambda obj: round(obj.arr / 12, 2))
    nps_score = factory.LazyFunction(lambda: fake.random_int(0, 10))
    data_tagging_percentage = factory.LazyFunction(lambda: float(fake.random_int(0, 100)))
    renewal_date = factory.LazyFunction(lambda: fake.date_between(start_date="+30d", end_date="+365d"))
    campaign_stats = factory.LazyFunction(
        lambda: {
            "sent": fake.random_int(0, 50),
            "opened": fake.random_int(0, 30),
            "clicked": fake.random_int(0, 10),
            "lastSentDate": fake.date_this_year().isoformat(),
        }
    )
    in_red_zone = False


class CustomerMetricFactory(factory.Factory):
    """Factory for the per-customer metrics row (pass customer_id)."""

    class Meta:
        model = dict

    active_stores = factory.LazyFunction(lambda: fake.random_int(1, 40))
    total_stores = factory.LazyAttribute(lambda obj: obj.active_stores + fake.random_int(0, 5))
    revenue_1_year = factory.LazyFunction(lambda: float(fake.random_int(10000, 500000)))
    revenue_ytd = factory.LazyAttribute(lambda obj: round(obj.revenue_1_year / 2, 2))
    campaigns_last_60_days = factory.LazyFunction(lambda: fake.random_int(0, 12))
    monthly_campaigns = factory.LazyFunction(lambda: fake.random_int(0, 6))
    qr_loyalty_enabled = factory.LazyFunction(fake.boolean)
    extra = factory.LazyFunction(dict)
