"""Billable weight of a shipment, with clubbing bag weight distribution."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Mapping

from ...errors import ValidationError
from ...models.domain import Clubbing, Shipment
from ...models.money import ZERO, weight
from ...persistence.shipments import ClubbingRepository


def distribute_bag_weight(declared: Mapping[str, Decimal], bag_weight: Decimal | None) -> Dict[str, Decimal]:
    """Split ``bag_weight`` across members in proportion to their declared weight.

    Shares are rounded to three places and the last member absorbs the
    rounding remainder, so the shares always sum to the bag weight exactly.
    """
    members = list(declared)
    if not members:
        return {}
    bag = weight(bag_weight or ZERO)
    if bag == ZERO:
        return {awb: ZERO for awb in members}

    total = sum(declared.values(), ZERO)
    shares: Dict[str, Decimal] = {}
    for awb in members[:-1]:
        if total > ZERO:
            shares[awb] = weight(bag * declared[awb] / total)
        else:
            shares[awb] = weight(bag / len(members))
    shares[members[-1]] = bag - sum(shares.values(), ZERO)
    return shares


def batch_weights(club: Clubbing) -> Dict[str, Decimal]:
    """Billable weight of every member: its row weight plus its share of the bag."""
    declared = {row.awb_no: weight(row.weight) for row in club.rows}
    shares = distribute_bag_weight(declared, club.bag_weight)
    return {awb: declared[awb] + shares[awb] for awb in declared}


class WeightAggregator:
    """Computes billable weight; clubbing context is always read from storage."""

    def __init__(self, clubbing: ClubbingRepository) -> None:
        self._clubbing = clubbing

    def club_for(self, shipment: Shipment) -> Clubbing | None:
        return self._clubbing.for_shipment(shipment)

    def aggregate_weight(self, shipment: Shipment, clubbing: Clubbing | None = None) -> Decimal:
        club = clubbing if clubbing is not None else self.club_for(shipment)
        if club is None:
            return shipment.chargeable_weight
        weights = batch_weights(club)
        if shipment.awb_no not in weights:
            raise ValidationError(f"Shipment {shipment.awb_no} is not a member of club {club.club_no}")
        return weights[shipment.awb_no]
