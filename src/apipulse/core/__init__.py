"""Pure analytics domain: models, aggregation, ranking and timelines."""
