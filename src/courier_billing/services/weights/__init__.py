from .aggregator import WeightAggregator, batch_weights, distribute_bag_weight

__all__ = ["WeightAggregator", "batch_weights", "distribute_bag_weight"]
