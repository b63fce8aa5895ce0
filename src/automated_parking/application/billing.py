# File: src/automated_parking/application/billing.py
"""
Billing Engine

Turns a closed parking record into a persisted bill. The minute rate and the
amount come from a pricing strategy; the engine formats the billing period
and stores the result.
"""

from typing import List, Optional
import logging

from ..domain.models import Bill, Floor, ParkingRecord
from ..domain.strategies import PricingStrategy, DemandPricingStrategy
from ..infrastructure.repositories import BillRepository


DEFAULT_TIMESTAMP_FORMAT = "%d.%m.%Y %H:%M"


class BillingEngine:
    """Generates and looks up bills"""

    def __init__(
        self,
        bills: BillRepository,
        pricing_strategy: Optional[PricingStrategy] = None,
        timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
    ):
        self.bills = bills
        self.pricing_strategy = pricing_strategy or DemandPricingStrategy()
        self.timestamp_format = timestamp_format
        self.logger = logging.getLogger(self.__class__.__name__)

    def generate_bill(self, record: ParkingRecord, floor: Floor) -> Bill:
        """
        Price a closed record and persist the bill

        The floor is only used for its nominal weight capacity; the rate
        follows the allowed weight snapshot kept on the record.
        """
        if record.is_open or record.emptying_timestamp is None:
            raise ValueError(f"Cannot bill parking record {record.id} before it is closed")

        price_per_minute = self.pricing_strategy.price_per_minute(record, floor)
        total = self.pricing_strategy.total_amount(record, floor)

        bill = Bill(
            vehicle_id=record.vehicle_id,
            billing_from=record.parking_timestamp.strftime(self.timestamp_format),
            billing_to=record.emptying_timestamp.strftime(self.timestamp_format),
            price_per_minute=price_per_minute,
            total_amount_to_be_paid=total
        )
        bill = self.bills.add(bill)

        self.logger.info(
            f"Bill {bill.id} for {bill.vehicle_id}: {bill.total_amount_to_be_paid} "
            f"at {bill.price_per_minute} per minute"
        )
        return bill

    def bills_for(self, vehicle_id: str) -> List[Bill]:
        return self.bills.find_by_vehicle(vehicle_id)
