"""Domain layer: error taxonomy, notification value objects and events."""
